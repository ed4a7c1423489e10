"""
URL configuration for TaxBooks Project.
"""
from django.urls import path, include

urlpatterns = [
    path('finance/', include('apps.finance.urls')),
]
