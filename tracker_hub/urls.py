"""URL routing for the tracker hub.

Paths match what deployed tracker firmware and viewers already call;
each accepts an optional trailing slash. An SSID may itself contain
slashes, so only one trailing slash is stripped from it.
"""

from django.urls import re_path
from django.urls.resolvers import URLPattern, URLResolver

from .views import (IngestView, LatestFixView, PoiView, StatusView,
                    UiConfigView, WifiDetailView, WifiListView)

urlpatterns: list[URLPattern | URLResolver] = [
    re_path(r'^receivedata/?$', IngestView.as_view(), name='ingest'),
    re_path(r'^api/latest-gps/?$', LatestFixView.as_view(), name='latest-fix'),
    re_path(r'^api/status/?$', StatusView.as_view(), name='status'),
    re_path(r'^api/poi/?$', PoiView.as_view(), name='poi'),
    re_path(r'^api/config/?$', UiConfigView.as_view(), name='ui-config'),
    re_path(r'^wifi/?$', WifiListView.as_view(), name='wifi-list'),
    re_path(r'^wifi/(?P<ssid>.+?)/?$', WifiDetailView.as_view(), name='wifi-detail'),
]
