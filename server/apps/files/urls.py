"""URL routes of the file broker API."""

from django.urls import path

from server.apps.files import views

app_name = 'files'

urlpatterns = [
    path('files/token', views.upload_token, name='upload_token'),
    path('files', views.files_collection, name='files'),
    path('files/<str:file_id>', views.file_detail, name='file_detail'),
    path(
        'files/<str:file_id>/content',
        views.file_content,
        name='file_content',
    ),
    path('users', views.users_collection, name='users'),
    path('users/<str:user_id>', views.user_detail, name='user_detail'),
    path('users/<str:user_id>/files', views.user_files, name='user_files'),
    path(
        'instances/<str:server_id>',
        views.instance_detail,
        name='instance_detail',
    ),
    path('health', views.health, name='health'),
]
