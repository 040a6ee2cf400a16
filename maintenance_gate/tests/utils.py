from secrets import token_hex

from django.contrib.auth.models import AnonymousUser, Group, User
from django.http import HttpResponse

from maintenance_gate.middleware import MaintenanceGateMiddleware


def application_view(request):
    return HttpResponse("Application response")


def create_middleware():
    return MaintenanceGateMiddleware(application_view)


class StubControlService:
    """
    A control service whose state tests set directly.
    """

    can_override_options = False
    can_restore_state = False

    def __init__(self, environment=None, startup_options=None):
        self.environment = environment
        self.startup_options = startup_options
        self.is_maintenance_mode_on = True
        self.override_options = None
        self.restore_calls = 0

    def get_options_to_override(self):
        return self.override_options

    def restore_state(self):
        self.restore_calls += 1


class OverridingControlService(StubControlService):
    can_override_options = True


class RestoringControlService(StubControlService):
    can_restore_state = True


class CreateTestUsers(object):
    @classmethod
    def create_user(cls, username, is_active=True, **kwargs):
        if "email" not in kwargs:
            kwargs["email"] = f"{username}@example.com"

        user = User.objects.create_user(username=username, **kwargs)
        fake_pw = token_hex(24)
        user.is_active = is_active
        user.set_password(fake_pw)
        user.save()

        user._password = fake_pw

        return user

    @classmethod
    def create_test_user(cls, username="testuser", **kwargs):
        """
        Creates an activated test User account
        """
        return cls.create_user(username, is_active=True, **kwargs)

    @classmethod
    def create_user_in_group(cls, username, group_name, **kwargs):
        user = cls.create_test_user(username, **kwargs)
        group, _ = Group.objects.get_or_create(name=group_name)
        user.groups.add(group)
        return user

    @staticmethod
    def anonymous_user():
        return AnonymousUser()
