#!/usr/bin/env python
"""
Test runner script for the full application suite
Usage: python run_tests.py [app_label ...]
"""
import os
import sys
import django
from django.conf import settings
from django.test.utils import get_runner

APPS = [
    'greenleaf.core',
    'greenleaf.vendors',
    'greenleaf.locations',
    'greenleaf.catalog',
    'greenleaf.inventory',
    'greenleaf.purchasing',
    'greenleaf.customers',
    'greenleaf.orders',
    'greenleaf.pos',
    'greenleaf.loyalty',
    'greenleaf.analytics',
    'greenleaf.storefront',
]

if __name__ == "__main__":
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'greenleaf.config.settings')
    django.setup()
    TestRunner = get_runner(settings)
    test_runner = TestRunner()
    failures = test_runner.run_tests(sys.argv[1:] or APPS)
    sys.exit(bool(failures))
