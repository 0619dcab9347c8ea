"""
Database models for the tracker hub.

Everything the hub persists is a whole JSON document addressed by key
(latest fix, WiFi credentials, POI catalog, UI config). There are no
partial updates: a write replaces the payload wholesale.
"""
from django.db import models


class Document(models.Model):
    """A JSON document stored under a unique key."""

    key = models.CharField(
        max_length=100,
        unique=True,
        help_text="Resource key (fix, credentials, poi, config)"
    )
    payload = models.JSONField(
        help_text="Complete document as JSON"
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When this document was last overwritten"
    )

    class Meta:
        ordering = ['key']
        verbose_name = 'Document'
        verbose_name_plural = 'Documents'

    def __str__(self) -> str:
        """Return string representation of the document."""
        return f"{self.key} (updated {self.updated_at})"
