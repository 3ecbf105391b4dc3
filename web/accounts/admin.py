from django.contrib import admin

from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('id', 'email', 'is_staff', 'created_at')
    search_fields = ('email',)
    list_filter = ('is_staff',)
