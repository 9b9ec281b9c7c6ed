"""
DineIn Django adapter URL routing.
"""

from django.urls import path

from adapters.django_api import views


urlpatterns = [
    path("tables/register", views.register_table_view),
    path("tables/claim", views.claim_table_view),
    path("reservations/accept", views.accept_reservation_view),
    path("orders/place", views.place_order_view),
    path("bill", views.live_bill_view),
    path("coupons/apply", views.apply_coupon_view),
    path("payments/counter/request", views.request_counter_payment_view),
    path("payments/counter/confirm", views.confirm_counter_payment_view),
    path("payments/webhook", views.payment_webhook_view),
    path("wallet/stats", views.wallet_stats_view),
]
