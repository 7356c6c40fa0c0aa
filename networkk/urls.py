"""
URL configuration for the Networkk project.
"""
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path


# ==================== Health Check Endpoint ====================

def health_check(request):
    """Health check endpoint for load balancers and monitoring."""
    return JsonResponse({'status': 'healthy'})


urlpatterns = [
    path('health/', health_check, name='health_check'),
    path('admin/', admin.site.urls),
    path('api/v1/', include('api.urls')),
]
