from django.contrib import admin
from .models import StorefrontPage, AIAgent, AIConversation, AIMessage


@admin.register(StorefrontPage)
class StorefrontPageAdmin(admin.ModelAdmin):
    list_display = ['title', 'slug', 'vendor', 'page_type', 'is_published', 'updated_at']
    list_filter = ['page_type', 'is_published']
    search_fields = ['title', 'slug', 'vendor__name']


@admin.register(AIAgent)
class AIAgentAdmin(admin.ModelAdmin):
    list_display = ['key', 'name', 'model', 'max_tokens', 'temperature', 'is_active']
    list_filter = ['is_active']


class AIMessageInline(admin.TabularInline):
    model = AIMessage
    extra = 0
    readonly_fields = ['role', 'content', 'created_at']


@admin.register(AIConversation)
class AIConversationAdmin(admin.ModelAdmin):
    list_display = ['title', 'vendor', 'user', 'agent', 'page', 'updated_at']
    list_filter = ['agent']
    inlines = [AIMessageInline]
