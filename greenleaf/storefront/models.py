from decimal import Decimal
from django.conf import settings
from django.db import models


class StorefrontPage(models.Model):
    """A public storefront page built from library sections"""
    PAGE_TYPE_CHOICES = [
        ('home', 'Home'),
        ('shop', 'Shop'),
        ('about', 'About'),
        ('contact', 'Contact'),
        ('faq', 'FAQ'),
        ('custom', 'Custom'),
    ]

    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='storefront_pages')
    slug = models.SlugField(max_length=100)
    title = models.CharField(max_length=200)
    page_type = models.CharField(max_length=20, choices=PAGE_TYPE_CHOICES, default='custom')
    # [{key, id, content}] in display order
    sections = models.JSONField(default=list, blank=True)
    seo = models.JSONField(default=dict, blank=True)
    is_published = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.vendor.name} / {self.slug}"

    class Meta:
        db_table = 'storefront_pages'
        ordering = ['vendor', 'slug']
        constraints = [
            models.UniqueConstraint(fields=['vendor', 'slug'], name='unique_page_slug_per_vendor'),
        ]


class AIAgent(models.Model):
    """Prompt and model configuration for one AI task"""
    key = models.SlugField(max_length=100, unique=True)
    name = models.CharField(max_length=200)
    model = models.CharField(max_length=100)
    max_tokens = models.IntegerField(default=4000)
    temperature = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal('0.70'))
    system_prompt = models.TextField()
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'ai_agents'
        ordering = ['key']


class AIConversation(models.Model):
    vendor = models.ForeignKey('vendors.Vendor', on_delete=models.CASCADE, related_name='ai_conversations')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='ai_conversations')
    agent = models.ForeignKey(AIAgent, on_delete=models.PROTECT, related_name='conversations')
    page = models.ForeignKey(StorefrontPage, on_delete=models.SET_NULL, null=True, blank=True, related_name='ai_conversations')
    title = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title or f"Conversation {self.id}"

    class Meta:
        db_table = 'ai_conversations'
        ordering = ['-updated_at']


class AIMessage(models.Model):
    ROLE_CHOICES = [
        ('user', 'User'),
        ('assistant', 'Assistant'),
    ]

    conversation = models.ForeignKey(AIConversation, on_delete=models.CASCADE, related_name='messages')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    content = models.TextField()
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.role}: {self.content[:50]}"

    class Meta:
        db_table = 'ai_messages'
        ordering = ['created_at', 'id']
