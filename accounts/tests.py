from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser, Group
from django.core.exceptions import PermissionDenied
from django.test import TestCase

from .roles import STAFF_GROUP, Role, is_staff_member, require_staff, role_for


User = get_user_model()


class RoleTest(TestCase):
    def test_anonymous_is_guest(self):
        self.assertEqual(role_for(AnonymousUser()), Role.GUEST)
        self.assertEqual(role_for(None), Role.GUEST)

    def test_registered_user_is_customer(self):
        user = User.objects.create_user(username="maria", password="pw")
        self.assertEqual(role_for(user), Role.CUSTOMER)
        self.assertFalse(is_staff_member(user))

    def test_staff_flag_or_group_makes_staff(self):
        flagged = User.objects.create_user(username="desk", password="pw", is_staff=True)
        grouped = User.objects.create_user(username="cleaner", password="pw")
        grouped.groups.add(Group.objects.create(name=STAFF_GROUP))

        self.assertEqual(role_for(flagged), Role.STAFF)
        self.assertEqual(role_for(grouped), Role.STAFF)

    def test_require_staff(self):
        user = User.objects.create_user(username="maria", password="pw")
        with self.assertRaises(PermissionDenied) as ctx:
            require_staff(user, "create walk-in bookings")
        self.assertEqual(str(ctx.exception), "Only staff can create walk-in bookings.")
