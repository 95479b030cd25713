from django.urls import path
from . import views

urlpatterns = [
    path('api/', views.api_root, name='api_root'),
    path('api/user/stats', views.user_stats, name='user_stats'),
    path('api/user/practice-problems', views.practice_problems, name='practice_problems'),
    path('api/user/activity-data', views.activity_data, name='activity_data'),
    path('api/user/handles', views.update_handles, name='update_handles'),
    path('api/user/refresh-cache', views.refresh_cache, name='refresh_cache'),
]
