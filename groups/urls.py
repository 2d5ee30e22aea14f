from django.urls import path
from .views import (
    GroupCreateView,
    GroupDetailView,
    GroupLeaveView,
    GroupMemberRemoveView,
    GroupMembersView,
)

app_name = "groups"

urlpatterns = [
    path("", GroupCreateView.as_view(), name="group-create"),
    path("<str:conversation_id>/", GroupDetailView.as_view(), name="group-detail"),
    # Membership
    path(
        "<str:conversation_id>/members/",
        GroupMembersView.as_view(),
        name="group-members",
    ),
    path(
        "<str:conversation_id>/members/<str:user_id>/",
        GroupMemberRemoveView.as_view(),
        name="group-member-remove",
    ),
    path("<str:conversation_id>/leave/", GroupLeaveView.as_view(), name="group-leave"),
]
