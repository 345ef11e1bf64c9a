from django.urls import path
from .views import (
    DashboardView,
    LeaderboardView,
    ProfileView,
    ScoreHistoryView,
    SessionCreateView,
    UserSessionDetailView,
    UserSessionListView,
)

urlpatterns = [
    path("sessions", SessionCreateView.as_view(), name="session-create"),
    path("users/<str:user_id>/sessions", UserSessionListView.as_view(), name="user-sessions"),
    path("users/<str:user_id>/sessions/<int:pk>", UserSessionDetailView.as_view(), name="user-session-detail"),
    path("users/<str:user_id>/dashboard", DashboardView.as_view(), name="user-dashboard"),
    path("users/<str:user_id>/profile", ProfileView.as_view(), name="user-profile"),
    path("users/<str:user_id>/score-history", ScoreHistoryView.as_view(), name="user-score-history"),
    path("leaderboard", LeaderboardView.as_view(), name="leaderboard"),
]
