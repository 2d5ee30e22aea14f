"""
URL configuration for the huddle project.
"""
from django.contrib import admin
from django.urls import path, include
from . import views

urlpatterns = [
    path('admin/', admin.site.urls),
    path('ping/', views.PingView.as_view(), name='ping'),
    path('conversations/', include('conversations.urls')),
    path('groups/', include('groups.urls')),
]
