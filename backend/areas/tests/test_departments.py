# areas/tests/test_departments.py
"""
Department API Tests
====================

Test Categories:
----------------
1. Department CRUD Tests - Creation, listing, admin-only edits
2. Member Tests - Add / remove / role changes and their permission rows
3. Ownership Tests - Superadmin removal of the owner
4. Subscriber Tests - Manual and admin-role subscribers
"""

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from access.models import AccessLevel, Action, Permission, ResourceType
from areas.models import Area, AreasMember, AreasSubscriber
from areas.services import add_area_member, create_area
from tasks.models import Task, TaskSubscriber
from users.models import Role

User = get_user_model()

DEPARTMENTS_URL = '/api/v1/departments/'


def create_test_user(name: str, superadmin: bool = False) -> User:
    user = User.objects.create_user(email=f"{name}@example.com", password="testpass123")
    if superadmin:
        Role.objects.create(user=user, is_admin=True)
    return user


def department_url(area, suffix=''):
    return f"{DEPARTMENTS_URL}{area.uid}/{suffix}"


class DepartmentAPITestCase(APITestCase):

    def setUp(self):
        self.head = create_test_user("head")
        self.member = create_test_user("member")
        self.outsider = create_test_user("outsider")
        self.area = create_area(self.head, "Engineering")
        add_area_member(self.area, self.member.id, AreasMember.Role.MEMBER, self.head)
        self.client.force_authenticate(user=self.head)

    def area_permission(self, user):
        return Permission.objects.filter(
            user=user, resource_type=ResourceType.AREA, resource_uid=self.area.uid
        ).first()


# ===========================================================================
# DEPARTMENT CRUD TESTS
# ===========================================================================

class DepartmentCrudTest(DepartmentAPITestCase):

    def test_create_makes_creator_admin(self):
        self.client.force_authenticate(user=self.outsider)

        response = self.client.post(DEPARTMENTS_URL, {'name': ' Sales ', 'description': 'Revenue'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        area = Area.objects.get(uid=response.data['uid'])
        self.assertEqual(area.name, 'Sales')
        self.assertTrue(AreasMember.objects.filter(area=area, user=self.outsider, role=AreasMember.Role.ADMIN).exists())
        self.assertTrue(AreasSubscriber.objects.filter(
            area=area, user=self.outsider, source=AreasSubscriber.Source.ADMIN_ROLE
        ).exists())

    def test_creator_in_another_department_is_not_added(self):
        self.client.force_authenticate(user=self.member)

        response = self.client.post(DEPARTMENTS_URL, {'name': 'Side project'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        area = Area.objects.get(uid=response.data['uid'])
        self.assertEqual(area.user, self.member)
        self.assertFalse(AreasMember.objects.filter(area=area).exists())

    def test_blank_name_is_rejected(self):
        response = self.client.post(DEPARTMENTS_URL, {'name': '  '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_shows_own_departments(self):
        create_area(self.outsider, "Hidden")

        response = self.client.get(DEPARTMENTS_URL)

        self.assertEqual([area['name'] for area in response.data], ["Engineering"])
        self.assertEqual(response.data[0]['my_role'], AreasMember.Role.ADMIN)

    def test_superadmin_lists_everything(self):
        create_area(self.outsider, "Hidden")
        admin = create_test_user("root", superadmin=True)
        self.client.force_authenticate(user=admin)

        response = self.client.get(DEPARTMENTS_URL)

        self.assertEqual(len(response.data), 2)

    def test_member_cannot_edit(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.patch(department_url(self.area), {'name': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_owner_edits_and_deletes(self):
        renamed = self.client.patch(department_url(self.area), {'name': 'Platform'}, format='json')
        deleted = self.client.delete(department_url(self.area))

        self.assertEqual(renamed.data['name'], 'Platform')
        self.assertEqual(deleted.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Area.objects.exists())
        self.assertFalse(Permission.objects.filter(resource_type=ResourceType.AREA).exists())

    def test_outsider_gets_not_found(self):
        self.client.force_authenticate(user=self.outsider)
        response = self.client.get(department_url(self.area))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


# ===========================================================================
# MEMBER TESTS
# ===========================================================================

class DepartmentMemberTest(DepartmentAPITestCase):

    def test_add_member_grants_access(self):
        response = self.client.post(
            department_url(self.area, 'members/'),
            {'user_id': self.outsider.id, 'role': 'member'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['members']), 3)
        self.assertEqual(self.area_permission(self.outsider).access_level, AccessLevel.READ_WRITE)

    def test_add_member_of_another_department(self):
        other_head = create_test_user("otherhead")
        create_area(other_head, "Sales")

        response = self.client.post(
            department_url(self.area, 'members/'), {'user_id': other_head.id}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'], 'User is already a member of another department')
        self.assertEqual(response.data['departmentName'], 'Sales')

    def test_add_existing_member(self):
        response = self.client.post(
            department_url(self.area, 'members/'), {'user_id': self.member.id}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'], 'User is already a member')

    def test_add_unknown_user(self):
        response = self.client.post(department_url(self.area, 'members/'), {'user_id': 9999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_plain_member_cannot_manage(self):
        self.client.force_authenticate(user=self.member)

        response = self.client.post(
            department_url(self.area, 'members/'), {'user_id': self.outsider.id}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['detail'], 'Not authorized to manage area members')

    def test_remove_member_drops_access(self):
        response = self.client.delete(department_url(self.area, f'members/{self.member.id}/'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(AreasMember.objects.filter(user=self.member).exists())
        self.assertIsNone(self.area_permission(self.member))

    def test_remove_non_member(self):
        response = self.client.delete(department_url(self.area, f'members/{self.outsider.id}/'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_promote_and_demote(self):
        promoted = self.client.put(
            department_url(self.area, f'members/{self.member.id}/role/'), {'role': 'admin'}, format='json'
        )

        self.assertEqual(promoted.status_code, status.HTTP_200_OK)
        self.assertEqual(self.area_permission(self.member).access_level, AccessLevel.ADMIN)
        self.assertTrue(AreasSubscriber.objects.filter(
            area=self.area, user=self.member, source=AreasSubscriber.Source.ADMIN_ROLE
        ).exists())

        self.client.patch(
            department_url(self.area, f'members/{self.member.id}/role/'), {'role': 'member'}, format='json'
        )

        self.assertEqual(self.area_permission(self.member).access_level, AccessLevel.READ_WRITE)
        self.assertFalse(AreasSubscriber.objects.filter(area=self.area, user=self.member).exists())

    def test_invalid_role(self):
        response = self.client.put(
            department_url(self.area, f'members/{self.member.id}/role/'), {'role': 'owner'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


# ===========================================================================
# OWNERSHIP TESTS
# ===========================================================================

class OwnershipTransferTest(DepartmentAPITestCase):

    def test_department_admin_cannot_remove_owner(self):
        add_area_member(self.area, self.outsider.id, AreasMember.Role.ADMIN, self.head)
        self.client.force_authenticate(user=self.outsider)

        response = self.client.delete(department_url(self.area, f'members/{self.head.id}/'))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['detail'], 'Only admins can remove the area owner')

    def test_superadmin_takes_over_ownership(self):
        admin = create_test_user("root", superadmin=True)
        self.client.force_authenticate(user=admin)

        response = self.client.delete(department_url(self.area, f'members/{self.head.id}/'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.area.refresh_from_db()
        self.assertEqual(self.area.user, admin)
        self.assertFalse(AreasMember.objects.filter(user=self.head).exists())
        self.assertFalse(AreasSubscriber.objects.filter(user=self.head).exists())

        action = Action.objects.get(verb='area_ownership_transfer')
        self.assertEqual(action.target_user, self.head)
        self.assertEqual(action.metadata['new_owner_email'], admin.email)
        self.assertEqual(action.metadata['reason'], 'admin_removal')


# ===========================================================================
# SUBSCRIBER TESTS
# ===========================================================================

class DepartmentSubscriberTest(DepartmentAPITestCase):

    def test_add_subscriber(self):
        response = self.client.post(
            department_url(self.area, 'subscribers/'), {'user_id': self.outsider.id}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        sources = {(row['user']['id'], row['source']) for row in response.data['subscribers']}
        self.assertIn((self.outsider.id, AreasSubscriber.Source.MANUAL), sources)
        self.assertIn((self.head.id, AreasSubscriber.Source.ADMIN_ROLE), sources)

    def test_duplicate_subscriber_conflicts(self):
        url = department_url(self.area, 'subscribers/')
        self.client.post(url, {'user_id': self.outsider.id}, format='json')

        response = self.client.post(url, {'user_id': self.outsider.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_user_id_is_required(self):
        response = self.client.post(department_url(self.area, 'subscribers/'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_retroactive_subscription(self):
        task = Task.objects.create(user=self.member, name="Existing")

        self.client.post(
            department_url(self.area, 'subscribers/'),
            {'user_id': self.outsider.id, 'retroactive': True},
            format='json',
        )

        self.assertTrue(TaskSubscriber.objects.filter(task=task, user=self.outsider).exists())
        self.assertTrue(Permission.objects.filter(
            user=self.outsider, resource_type=ResourceType.TASK, resource_uid=task.uid
        ).exists())

    def test_admin_role_subscription_cannot_be_removed(self):
        response = self.client.delete(department_url(self.area, f'subscribers/{self.head.id}/'))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['detail'], 'Cannot remove admin-role subscribers manually')

    def test_remove_subscriber(self):
        AreasSubscriber.objects.create(area=self.area, user=self.outsider, added_by=self.head)

        response = self.client.delete(department_url(self.area, f'subscribers/{self.outsider.id}/'))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(AreasSubscriber.objects.filter(user=self.outsider).exists())

    def test_remove_unknown_subscriber(self):
        response = self.client.delete(department_url(self.area, f'subscribers/{self.outsider.id}/'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_requires_manager(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.get(department_url(self.area, 'subscribers/'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_new_member_task_subscribes_department_admins(self):
        self.client.force_authenticate(user=self.member)

        response = self.client.post('/api/v1/tasks/', {'name': 'Fresh'}, format='json')

        task = Task.objects.get(uid=response.data['uid'])
        self.assertTrue(TaskSubscriber.objects.filter(task=task, user=self.head).exists())
