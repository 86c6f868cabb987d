from django.urls import path
from . import views

urlpatterns = [
    path('', views.record_list_view, name='donation-records'),
    path('stats/', views.record_stats_view, name='donation-record-stats'),
    path('walk-in/', views.walk_in_view, name='donation-walk-in'),
    path('<int:booking_id>/transition/', views.record_transition_view, name='donation-record-transition'),
]
