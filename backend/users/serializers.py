from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

User = get_user_model()


class UserRegistrationSerializer(serializers.ModelSerializer):
    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password]
    )

    password2 = serializers.CharField(write_only=True, required=True)

    class Meta:
        model = User
        fields = (
            'email',
            'username',
            'password',
            'password2',
            'first_name',
            'last_name',
            'timezone'
        )
        extra_kwargs = {
            'email': {'required': True},
        }

    def validate(self, attrs):
        if attrs['password'] != attrs['password2']:
            raise serializers.ValidationError({"password": "Password fields didn't match."})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password2')

        return User.objects.create_user(
            email=validated_data['email'],
            password=validated_data['password'],
            username=validated_data.get('username') or None,
            first_name=validated_data.get('first_name', ''),
            last_name=validated_data.get('last_name', ''),
            timezone=validated_data.get('timezone', 'UTC'),
        )


class UserDetailsSerializer(serializers.ModelSerializer):
    """
    Serializer for the authenticated user. Only the profile fields and the
    notification preferences are writable.
    """
    is_admin = serializers.BooleanField(source='is_superadmin', read_only=True)

    class Meta:
        model = User
        fields = (
            'id',
            'email',
            'username',
            'first_name',
            'last_name',
            'timezone',
            'notification_preferences',
            'is_admin',
        )
        read_only_fields = ('id', 'email', 'is_admin')

    def validate_notification_preferences(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("notification_preferences must be an object.")
        for key, channels in value.items():
            if not isinstance(channels, dict):
                raise serializers.ValidationError(f"Preferences for '{key}' must be an object.")
        return value


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact representation embedded in tasks, members and subscribers."""
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ('id', 'email', 'first_name', 'last_name', 'name')
        read_only_fields = fields


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Token serializer that authenticates with the email field and adds a few
    profile claims for the frontend.
    """
    username_field = 'email'

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['full_name'] = user.get_full_name()
        token['is_admin'] = user.is_superadmin
        return token
