"""
Django management command to create or update the default AI agents
"""
from django.conf import settings
from django.core.management.base import BaseCommand
from greenleaf.storefront.agents import DEFAULT_AGENTS
from greenleaf.storefront.models import AIAgent


class Command(BaseCommand):
    help = 'Create or update the default AI agents (storefront builder, strain autofill)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--model',
            type=str,
            default=None,
            help='Model to assign to the agents (default: AI_DEFAULT_MODEL)',
        )

    def handle(self, *args, **options):
        model = options.get('model') or settings.AI_DEFAULT_MODEL
        for config in DEFAULT_AGENTS:
            agent, created = AIAgent.objects.update_or_create(
                key=config['key'],
                defaults={
                    'name': config['name'],
                    'model': model,
                    'max_tokens': config['max_tokens'],
                    'temperature': config['temperature'],
                    'system_prompt': config['system_prompt'],
                    'is_active': True,
                },
            )
            verb = 'Created' if created else 'Updated'
            self.stdout.write(self.style.SUCCESS(f"{verb} agent '{agent.key}' ({agent.model})"))
