from django.urls import path
from . import views

urlpatterns = [
    path('', views.create_booking, name='create_booking'),
    path('slots/', views.list_slots, name='list_slots'),
    path('slots/conflict-check/', views.check_conflicts, name='check_conflicts'),
    path('search/', views.search_bookings, name='search_bookings'),
    path('list/', views.admin_bookings, name='admin_bookings'),
    path('calendar/', views.calendar, name='calendar'),
    path('notifications/', views.notifications, name='notifications'),
    path('notifications/mark-all-read/', views.read_all_notifications, name='read_all_notifications'),
    path('notifications/<int:notification_id>/read/', views.read_notification, name='read_notification'),
    path('sweep/', views.sweep, name='sweep_expired'),
    path('settings/', views.ground_settings, name='ground_settings'),
    path('<int:booking_id>/', views.get_booking, name='get_booking'),
    path('<int:booking_id>/approve/', views.approve, name='approve_booking'),
    path('<int:booking_id>/reject/', views.reject, name='reject_booking'),
]
