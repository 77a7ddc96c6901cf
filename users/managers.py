from __future__ import annotations

from django.contrib.auth.base_user import BaseUserManager
from django.db import models


class UserProfileQuerySet(models.QuerySet):
    """Custom queryset helpers for UserProfile."""

    def with_role(self, role: str) -> "UserProfileQuerySet":
        return self.filter(role=role, is_active=True)


class UserProfileManager(BaseUserManager):
    """Custom manager for the UserProfile model."""

    use_in_migrations = True

    def get_queryset(self):  # type: ignore[override]
        return UserProfileQuerySet(self.model, using=self._db)

    def with_role(self, role: str):
        return self.get_queryset().with_role(role)

    def _create_user(self, user_id: str, password: str | None, **extra_fields):
        if not user_id:
            raise ValueError("Users must have a user_id.")
        user_id = user_id.strip()
        user = self.model(user_id=user_id, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_user(self, user_id: str, password: str | None = None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(user_id, password, **extra_fields)

    def create_superuser(self, user_id: str, password: str | None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", "Administrator")

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superusers must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superusers must have is_superuser=True.")
        return self._create_user(user_id, password, **extra_fields)
