from django.urls import path
from . import views

app_name = 'conversations'

urlpatterns = [
    path('', views.ConversationListView.as_view(), name='conversation-list'),
    path('direct/', views.DirectConversationCreateView.as_view(), name='conversation-direct'),
    path('unread/', views.TotalUnreadView.as_view(), name='total-unread'),
    path('favorites/', views.FavoriteListView.as_view(), name='favorite-list'),
    path('<str:conversation_id>/', views.ConversationDetailView.as_view(), name='conversation-detail'),
    path('<str:conversation_id>/members/', views.ConversationMembersView.as_view(), name='conversation-members'),
    path('<str:conversation_id>/messages/', views.ConversationMessagesView.as_view(), name='conversation-messages'),
    path('<str:conversation_id>/read/', views.MarkReadView.as_view(), name='conversation-read'),
    path('<str:conversation_id>/unread/', views.UnreadCountView.as_view(), name='conversation-unread'),
    path('<str:conversation_id>/favorite/', views.FavoriteToggleView.as_view(), name='conversation-favorite'),
]
