"""
Mi OpenLab URL Configuration
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'Mi OpenLab API Server',
        'version': '1.0',
        'endpoints': {
            'projects': '/api/projects/',
            'feed': '/api/feed/',
            'ranking': '/api/ranking/',
            'profile': '/api/profile/',
            'users': '/api/users/<uid>/',
            'groups': '/api/groups/',
            'auth': '/api/auth/whoami/',
        },
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('community.urls')),
]
