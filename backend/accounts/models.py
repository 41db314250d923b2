from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    display_name = models.CharField(max_length=120, blank=True)

    @property
    def label(self) -> str:
        return self.display_name or self.get_full_name() or self.email or self.username
