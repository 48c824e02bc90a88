from django.contrib import admin

from .models import Task


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('name', 'importance', 'complexity', 'points', 'planned_date', 'due_date', 'position', 'is_completed')
    list_filter = ('is_completed',)
    readonly_fields = ('points',)
    search_fields = ('name',)
