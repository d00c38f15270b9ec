"""
Root URL configuration for the exam portal.
"""
from django.contrib import admin
from django.urls import include, path
from django.views.generic import RedirectView

from core.views import login_view, logout_view

urlpatterns = [
    path('', RedirectView.as_view(url='/creator/exams/', permanent=False), name='home'),
    path('login/', login_view, name='login'),
    path('logout/', logout_view, name='logout'),
    path('admin/', admin.site.urls),
    path('creator/', include('creator.urls')),
    path('api/creator/', include('creator.api_urls')),
]

# Custom error handlers
handler404 = 'core.error_handlers.handler404'
handler500 = 'core.error_handlers.handler500'
handler403 = 'core.error_handlers.handler403'
handler400 = 'core.error_handlers.handler400'
