from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_CHOICES = [
        ("admin", "Admin"),
        ("branch_admin", "Branch Admin"),
        ("supervisor", "Supervisor"),
        ("cashier", "Cashier"),
    ]

    ELEVATED_ROLES = ("admin", "branch_admin", "supervisor")

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="cashier")
    branch = models.ForeignKey(
        "pos.Branch",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="staff",
    )
    phone = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "users"
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def is_admin(self):
        return self.role == "admin" or self.is_superuser

    @property
    def is_branch_admin(self):
        return self.role == "branch_admin"

    @property
    def is_supervisor(self):
        return self.role == "supervisor"

    @property
    def is_cashier(self):
        return self.role == "cashier"

    @property
    def has_elevated_role(self):
        return self.is_admin or self.role in self.ELEVATED_ROLES

    @property
    def roles(self):
        roles = [self.role]
        if self.is_superuser and "admin" not in roles:
            roles.append("admin")
        return tuple(roles)
