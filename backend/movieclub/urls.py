"""
MovieClub URL Configuration
"""
from django.conf import settings
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'MovieClub Community API Server',
        'version': '1.0',
        'endpoints': {
            'posts': '/api/posts/',
            'post': '/api/posts/<id>/',
            'comments': '/api/posts/<id>/comments/',
            'cats': '/api/cats/',
            'emotions': '/api/emotions/',
            'profile': '/api/users/<id>/profile/',
            'auth': '/api/auth/',
        },
        'frontend': settings.FRONTEND_URL or 'http://localhost:3000',
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('community.urls')),
]
