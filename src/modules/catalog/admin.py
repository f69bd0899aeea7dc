from django.contrib import admin

from modules.catalog.models import Book


@admin.register(Book)
class BookAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "author", "price", "stock", "active")
    list_filter = ("active",)
    search_fields = ("id", "title", "author")
