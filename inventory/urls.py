from django.urls import path
from . import views

urlpatterns = [
    path('<int:hospital_id>/stock/', views.stock_summary_view, name='hospital-stock-summary'),
]
