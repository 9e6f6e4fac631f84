from django.urls import path
from . import views

urlpatterns = [
    path('dashboard/', views.dashboard, name='dashboard'),
    path('bookings/<int:booking_id>/', views.get_booking_payments, name='booking_payments'),
    path('bookings/<int:booking_id>/complete/', views.complete_booking_payment, name='complete_booking_payment'),
]
