from django.db import models


class ProcessedPayment(models.Model):
    """Claim table for payment references.

    A row exists while a reference is being handled and stays once it has
    been handled successfully. The unique constraint on ``reference`` is what
    stops two workers from processing the same payment.
    """

    reference = models.CharField(max_length=100, unique=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    source = models.CharField(max_length=50, blank=True)
    processed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-processed_at']

    def __str__(self):
        return self.reference
