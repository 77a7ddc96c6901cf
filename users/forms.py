from __future__ import annotations

from django import forms
from django.contrib.auth.forms import ReadOnlyPasswordHashField

from .models import UserProfile


class UserCreationForm(forms.ModelForm):
    password1 = forms.CharField(
        label="Password",
        widget=forms.PasswordInput,
        strip=False,
    )
    password2 = forms.CharField(
        label="Confirm password",
        widget=forms.PasswordInput,
        strip=False,
    )

    class Meta:
        model = UserProfile
        fields = ["user_id", "name", "role", "is_active", "is_staff"]

    def clean_user_id(self):
        user_id = self.cleaned_data["user_id"].strip()
        if UserProfile.objects.filter(user_id=user_id).exists():
            raise forms.ValidationError("This user id is already registered.")
        return user_id

    def clean_password2(self):
        password1 = self.cleaned_data.get("password1")
        password2 = self.cleaned_data.get("password2")
        if password1 and password2 and password1 != password2:
            raise forms.ValidationError("Passwords do not match.")
        return password2

    def save(self, commit: bool = True):
        user = super().save(commit=False)
        user.set_password(self.cleaned_data["password1"])
        if commit:
            user.save()
        return user


class UserChangeForm(forms.ModelForm):
    password = ReadOnlyPasswordHashField(
        label="Password",
        help_text="Passwords are not stored in plain text.",
    )

    class Meta:
        model = UserProfile
        fields = ["user_id", "name", "role", "is_active", "is_staff", "groups", "password"]
        widgets = {"groups": forms.CheckboxSelectMultiple}

    def clean_password(self):
        return self.initial.get("password")

    def clean_user_id(self):
        user_id = self.cleaned_data["user_id"].strip()
        qs = UserProfile.objects.filter(user_id=user_id)
        if self.instance.pk:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise forms.ValidationError("This user id is already registered.")
        return user_id
