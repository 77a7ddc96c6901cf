from __future__ import annotations

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models
from django.utils import timezone

from .managers import UserProfileManager


class Role(models.TextChoices):
    ADMINISTRATOR = "Administrator", "Administrator"
    FIELD_COLLECTION = "Field Collection", "Field Collection"
    PROCESSING = "Processing", "Processing"
    PACKAGING = "Packaging", "Packaging"
    LABELING = "Labeling", "Labeling"


class UserProfile(AbstractBaseUser, PermissionsMixin):
    user_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=150, blank=True)
    role = models.CharField(
        max_length=32,
        choices=Role.choices,
        default=Role.FIELD_COLLECTION,
    )

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = UserProfileManager()

    USERNAME_FIELD = "user_id"
    REQUIRED_FIELDS = ["name"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ["name", "user_id"]

    def __str__(self) -> str:
        if self.name:
            return f"{self.name} ({self.user_id})"
        return self.user_id

    def get_full_name(self) -> str:
        return self.name or self.user_id

    def get_short_name(self) -> str:
        return self.name.split(" ")[0] if self.name else self.user_id

    @property
    def is_administrator(self) -> bool:
        return self.role == Role.ADMINISTRATOR
