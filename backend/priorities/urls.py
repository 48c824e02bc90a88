"""
URL configuration for the priorities app.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('', views.api_info, name='api-info'),
    path('tasks/order/', views.order_tasks, name='order-tasks'),
    path('tasks/points/', views.compute_task_points, name='compute-points'),
    path('tasks/reorder/', views.reorder_task, name='reorder-task'),
    path('tasks/categories/', views.get_categories, name='get-categories'),
    path('tasks/defaults/', views.get_defaults, name='get-defaults'),
]
