"""
Finance URL configuration - UAE VAT 201 and Account Ledger
"""
from django.urls import path
from . import views

app_name = 'finance'

urlpatterns = [
    # ============ VAT 201 ============
    path('vat-201/compute/', views.vat_return_compute, name='vat_return_compute'),
    path('vat-201/export/', views.vat_return_export, name='vat_return_export'),

    # ============ ACCOUNT LEDGER ============
    path('ledger/', views.account_ledger, name='account_ledger'),
]
