from django.contrib import admin

from .models import ExchangeRate


@admin.register(ExchangeRate)
class ExchangeRateAdmin(admin.ModelAdmin):
    list_display = ('base_currency', 'target_currency', 'rate', 'source', 'created_at')
    list_filter = ('base_currency', 'source')
    search_fields = ('target_currency',)
    ordering = ('-created_at', 'target_currency')
    readonly_fields = ('base_currency', 'target_currency', 'rate', 'source', 'created_at')

    def has_add_permission(self, request):
        return False
