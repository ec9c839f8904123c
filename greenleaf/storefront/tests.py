"""
Test suite for the public storefront, page management and the AI endpoints
"""
import json
from io import StringIO
from unittest.mock import MagicMock, patch
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient
from greenleaf.catalog.models import ProductCOA
from greenleaf.core.models import AuditLog
from greenleaf.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from greenleaf.storefront.llm import LLMError, extract_json
from greenleaf.storefront.models import AIAgent, AIConversation, StorefrontPage
from greenleaf.storefront.section_library import build_default_sections, normalize_sections


class SectionLibraryTests(TestCase):
    def test_default_sections_for_page_type(self):
        keys = [s['key'] for s in build_default_sections('about')]
        self.assertEqual(keys, ['hero', 'about_story', 'stats', 'cta'])

    def test_unknown_page_type_falls_back_to_custom(self):
        self.assertEqual([s['key'] for s in build_default_sections('landing')], ['hero'])

    def test_normalize_merges_defaults_and_keeps_id(self):
        sections = normalize_sections([{'key': 'hero', 'id': 'abc', 'content': {'headline': 'Fresh Drops'}}])
        self.assertEqual(sections[0]['id'], 'abc')
        self.assertEqual(sections[0]['content']['headline'], 'Fresh Drops')
        self.assertEqual(sections[0]['content']['cta_primary']['text'], 'Shop Now')

    def test_normalize_rejects_bad_input(self):
        with self.assertRaises(ValueError):
            normalize_sections({'key': 'hero'})
        with self.assertRaises(ValueError):
            normalize_sections([{'key': 'carousel'}])
        with self.assertRaises(ValueError):
            normalize_sections([{'content': {}}])


class ExtractJSONTests(TestCase):
    def test_bare_and_fenced(self):
        self.assertEqual(extract_json('{"a": 1}'), {'a': 1})
        self.assertEqual(extract_json('```json\n[1, 2]\n```'), [1, 2])

    def test_embedded_in_prose(self):
        self.assertEqual(extract_json('Sure! Here it is: {"strain_type": "Indica"} Enjoy.'), {'strain_type': 'Indica'})

    def test_no_json(self):
        with self.assertRaises(ValueError):
            extract_json('I could not find that strain.')
        with self.assertRaises(ValueError):
            extract_json(None)


class PublicStorefrontTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.vendor = TestDataFactory.create_vendor(name='Canopy Club', slug='canopy-club')
        self.category = TestDataFactory.create_category(
            self.vendor, name='Flower', field_visibility={'supplier_batch': {'shop': False, 'product_page': True}})
        self.product = TestDataFactory.create_product(
            self.vendor, name='Lemon Haze', category=self.category,
            custom_fields={'strain_type': 'Sativa', 'supplier_batch': 'B-1192'})
        self.product.slug = 'lemon-haze'
        self.product.save()
        TestDataFactory.create_product(self.vendor, name='Draft Kush', status='draft')
        StorefrontPage.objects.create(vendor=self.vendor, slug='home', title='Home', page_type='home',
                                      sections=build_default_sections('home'), is_published=True)
        StorefrontPage.objects.create(vendor=self.vendor, slug='secret', title='Secret', is_published=False)

    def test_store_info(self):
        response = self.client.get('/api/v1/store/canopy-club/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['vendor']['name'], 'Canopy Club')
        self.assertEqual([p['slug'] for p in response.data['pages']], ['home'])
        self.assertEqual(response.data['categories'][0]['name'], 'Flower')

    def test_unknown_store(self):
        response = self.client.get('/api/v1/store/nowhere/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Store not found')

    def test_suspended_store(self):
        self.vendor.status = 'suspended'
        self.vendor.save()
        cache.clear()
        response = self.client.get('/api/v1/store/canopy-club/products/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_products_hide_fields_not_shown_in_shop(self):
        response = self.client.get('/api/v1/store/canopy-club/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        fields = response.data['products'][0]['custom_fields']
        self.assertEqual(fields, {'strain_type': 'Sativa'})

    def test_products_by_category(self):
        response = self.client.get('/api/v1/store/canopy-club/products/?category=edibles')
        self.assertEqual(response.data['count'], 0)

    def test_product_page_shows_its_fields(self):
        response = self.client.get('/api/v1/store/canopy-club/products/lemon-haze/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['custom_fields']['supplier_batch'], 'B-1192')
        self.assertEqual(response.data['coas'], [])

    def test_product_page_lists_active_coas(self):
        ProductCOA.objects.create(vendor=self.vendor, product=self.product, file_url='https://files.example.com/lh.pdf',
                                  lab_name='ACS Lab', batch_number='LH-22', is_verified=True)
        ProductCOA.objects.create(vendor=self.vendor, product=self.product, file_url='https://files.example.com/old.pdf',
                                  is_active=False)
        response = self.client.get('/api/v1/store/canopy-club/products/lemon-haze/')
        self.assertEqual(len(response.data['coas']), 1)
        self.assertEqual(response.data['coas'][0]['batch_number'], 'LH-22')
        self.assertEqual(response.data['coas'][0]['status'], 'approved')

    def test_draft_product_not_found(self):
        draft = self.vendor.products.get(name='Draft Kush')
        response = self.client.get(f'/api/v1/store/canopy-club/products/{draft.slug}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_published_page(self):
        response = self.client.get('/api/v1/store/canopy-club/pages/home/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sections'][0]['key'], 'hero')

    def test_unpublished_page(self):
        response = self.client.get('/api/v1/store/canopy-club/pages/secret/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Page not found')


class PageManagementTests(TestCase):
    def setUp(self):
        cache.clear()
        self.vendor = TestDataFactory.create_vendor()
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_create_page_with_default_sections(self):
        response = self.client.post('/api/v1/storefront/pages/', {'title': 'About Us', 'page_type': 'about'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'about-us')
        self.assertEqual(len(response.data['sections']), 4)
        self.assertTrue(AuditLog.objects.filter(model_name='StorefrontPage', action='create').exists())

    def test_create_page_with_unknown_section(self):
        response = self.client.post('/api/v1/storefront/pages/',
                                    {'title': 'Promo', 'sections': [{'key': 'popup'}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_duplicate_slug(self):
        StorefrontPage.objects.create(vendor=self.vendor, slug='faq', title='FAQ')
        response = self.client.post('/api/v1/storefront/pages/', {'title': 'FAQ', 'slug': 'faq'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_and_publish(self):
        page = StorefrontPage.objects.create(vendor=self.vendor, slug='home', title='Home', page_type='home')
        response = self.client.patch(f'/api/v1/storefront/pages/{page.id}/',
                                     {'is_published': True, 'sections': [{'key': 'cta'}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        page.refresh_from_db()
        self.assertTrue(page.is_published)
        self.assertEqual(page.sections[0]['key'], 'cta')

    def test_delete(self):
        page = StorefrontPage.objects.create(vendor=self.vendor, slug='old', title='Old')
        response = self.client.delete(f'/api/v1/storefront/pages/{page.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(StorefrontPage.objects.filter(pk=page.id).exists())

    def test_other_vendor_page(self):
        other = TestDataFactory.create_vendor()
        page = StorefrontPage.objects.create(vendor=other, slug='home', title='Home')
        response = self.client.get(f'/api/v1/storefront/pages/{page.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_section_list_by_page_type(self):
        response = self.client.get('/api/v1/storefront/sections/?page_type=shop')
        keys = [s['key'] for s in response.data['sections']]
        self.assertIn('product_grid', keys)
        self.assertNotIn('contact', keys)

    def test_employee_cannot_manage_pages(self):
        employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client.authenticate_user(employee)
        response = self.client.get('/api/v1/storefront/pages/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


def mock_llm(reply=None, error=None):
    client = MagicMock()
    if error is not None:
        client.generate_text.side_effect = error
    else:
        client.generate_text.return_value = reply
    return client


class StorefrontGenerateTests(TestCase):
    def setUp(self):
        cache.clear()
        self.vendor = TestDataFactory.create_vendor(name='Canopy Club')
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.page = StorefrontPage.objects.create(vendor=self.vendor, slug='home', title='Home', page_type='home',
                                                  sections=build_default_sections('home'))

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_generate_updates_page(self, get_client):
        reply = 'Here is a bolder hero.\n```json\n[{"key": "hero", "content": {"headline": "Fresh Drops"}}]\n```'
        get_client.return_value = mock_llm(reply)
        response = self.client.post('/api/v1/ai/storefront-generate/',
                                    {'prompt': 'Make the hero bolder', 'pageId': self.page.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['page_updated'])
        self.page.refresh_from_db()
        self.assertEqual(len(self.page.sections), 1)
        self.assertEqual(self.page.sections[0]['content']['headline'], 'Fresh Drops')

        system = get_client.return_value.generate_text.call_args[0][0]
        self.assertIn('Vendor: Canopy Club', system)
        self.assertNotIn('{section_keys}', system)
        self.assertTrue(AIAgent.objects.filter(key='storefront_builder').exists())
        self.assertTrue(AuditLog.objects.filter(action='ai_generate', model_name='StorefrontPage').exists())

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_follow_up_sends_history(self, get_client):
        get_client.return_value = mock_llm('Happy to help. What tone do you want?')
        first = self.client.post('/api/v1/ai/storefront-generate/', {'prompt': 'Help me'}, format='json')
        self.assertFalse(first.data['page_updated'])
        self.assertIsNone(first.data['sections'])

        conversation_id = first.data['conversation_id']
        self.client.post('/api/v1/ai/storefront-generate/',
                         {'prompt': 'Laid back', 'conversationId': conversation_id}, format='json')
        messages = get_client.return_value.generate_text.call_args[0][1]
        self.assertEqual([m['role'] for m in messages], ['user', 'assistant', 'user'])
        self.assertEqual(AIConversation.objects.get(pk=conversation_id).messages.count(), 4)

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_unusable_sections_leave_page_alone(self, get_client):
        get_client.return_value = mock_llm('[{"key": "marquee"}]')
        response = self.client.post('/api/v1/ai/storefront-generate/',
                                    {'prompt': 'Add a marquee', 'pageId': self.page.id}, format='json')
        self.assertFalse(response.data['page_updated'])
        self.page.refresh_from_db()
        self.assertEqual(len(self.page.sections), 5)

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_llm_failure(self, get_client):
        get_client.return_value = mock_llm(error=LLMError('AI service request failed'))
        response = self.client.post('/api/v1/ai/storefront-generate/', {'prompt': 'Hi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['error'], 'AI service request failed')

    @override_settings(ANTHROPIC_API_KEY='')
    def test_missing_api_key(self):
        response = self.client.post('/api/v1/ai/storefront-generate/', {'prompt': 'Hi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    def test_prompt_required(self):
        response = self.client.post('/api/v1/ai/storefront-generate/', {'prompt': '  '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_non_numeric_ids_rejected(self, get_client):
        for field in ('pageId', 'conversationId'):
            response = self.client.post('/api/v1/ai/storefront-generate/', {'prompt': 'Hi', field: 'abc'}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data['error'], f'{field} must be an integer id')
        response = self.client.get('/api/v1/ai/conversations/?page=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        get_client.assert_not_called()
        self.assertFalse(AIConversation.objects.exists())

    def test_inactive_agent(self):
        call_command('seed_ai_agents', stdout=StringIO())
        AIAgent.objects.filter(key='storefront_builder').update(is_active=False)
        response = self.client.post('/api/v1/ai/storefront-generate/', {'prompt': 'Hi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_conversations(self, get_client):
        get_client.return_value = mock_llm('Sure.')
        created = self.client.post('/api/v1/ai/storefront-generate/',
                                   {'prompt': 'Hello there', 'pageId': self.page.id}, format='json')
        conversation_id = created.data['conversation_id']

        listing = self.client.get(f'/api/v1/ai/conversations/?page={self.page.id}')
        self.assertEqual(listing.data[0]['message_count'], 2)
        self.assertEqual(listing.data[0]['agent_key'], 'storefront_builder')

        detail = self.client.get(f'/api/v1/ai/conversations/{conversation_id}/')
        self.assertEqual([m['content'] for m in detail.data['messages']], ['Hello there', 'Sure.'])

        response = self.client.delete(f'/api/v1/ai/conversations/{conversation_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_other_vendor_conversation(self):
        other = TestDataFactory.create_vendor()
        call_command('seed_ai_agents', stdout=StringIO())
        conversation = AIConversation.objects.create(vendor=other, agent=AIAgent.objects.first(), title='x')
        response = self.client.get(f'/api/v1/ai/conversations/{conversation.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class StrainAutofillTests(TestCase):
    def setUp(self):
        cache.clear()
        self.vendor = TestDataFactory.create_vendor()
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.product = TestDataFactory.create_product(self.vendor, name='Blue Dream',
                                                      custom_fields={'grower': 'Hill Farms'})

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_autofill_and_apply(self, get_client):
        get_client.return_value = mock_llm(json.dumps({
            'strain_type': 'Hybrid',
            'thca_percentage': 24.5,
            'terpene_profile': ['Myrcene', 'Pinene'],
            'effects': 'Relaxing',
            'lineage': 'Unknown',
        }))
        response = self.client.post('/api/v1/ai/autofill-strain/',
                                    {'productId': self.product.id, 'apply': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['strain_name'], 'Blue Dream')
        self.assertEqual(response.data['data']['effects'], [])
        self.assertIsNone(response.data['data']['nose'])
        self.assertTrue(response.data['applied'])

        self.product.refresh_from_db()
        self.assertEqual(self.product.custom_fields['grower'], 'Hill Farms')
        self.assertEqual(self.product.custom_fields['strain_type'], 'Hybrid')
        self.assertEqual(self.product.custom_fields['terpene_profile'], ['Myrcene', 'Pinene'])
        self.assertNotIn('lineage', self.product.custom_fields)
        self.assertNotIn('effects', self.product.custom_fields)

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_autofill_without_apply(self, get_client):
        get_client.return_value = mock_llm('{"strain_type": "Indica"}')
        response = self.client.post('/api/v1/ai/autofill-strain/', {'strainName': 'Granddaddy Purple'},
                                    format='json')
        self.assertFalse(response.data['applied'])
        self.assertEqual(response.data['data']['strain_type'], 'Indica')

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_invalid_reply(self, get_client):
        get_client.return_value = mock_llm('No data available for that strain.')
        response = self.client.post('/api/v1/ai/autofill-strain/', {'strainName': 'Mystery'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['error'], 'AI returned invalid strain data')

    def test_name_required(self):
        response = self.client.post('/api/v1/ai/autofill-strain/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_numeric_product_id(self):
        response = self.client.post('/api/v1/ai/autofill-strain/', {'productId': 'abc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'productId must be an integer id')


class BulkAutofillTests(TestCase):
    def setUp(self):
        cache.clear()
        self.vendor = TestDataFactory.create_vendor()
        self.owner = TestDataFactory.create_user(vendor=self.vendor, role='vendor')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.blue_dream = TestDataFactory.create_product(self.vendor, name='Blue Dream')
        self.gelato = TestDataFactory.create_product(self.vendor, name='Gelato 41')

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_one_failure_does_not_stop_the_batch(self, get_client):
        client = MagicMock()
        client.generate_text.side_effect = [
            '{"strain_type": "Hybrid", "lineage": "Blueberry x Haze"}',
            LLMError('AI service unavailable'),
        ]
        get_client.return_value = client
        response = self.client.post('/api/v1/ai/bulk-autofill/', {
            'productIds': [self.blue_dream.id, str(self.gelato.id)],
            'apply': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['succeeded'], 1)
        self.assertEqual(response.data['failed'], 1)

        first, second = response.data['results']
        self.assertEqual(first['product_id'], self.blue_dream.id)
        self.assertTrue(first['applied'])
        self.assertEqual(first['data']['lineage'], 'Blueberry x Haze')
        self.assertFalse(second['success'])
        self.assertEqual(second['error'], 'AI service unavailable')

        self.blue_dream.refresh_from_db()
        self.gelato.refresh_from_db()
        self.assertEqual(self.blue_dream.custom_fields['strain_type'], 'Hybrid')
        self.assertEqual(self.gelato.custom_fields, {})
        prompt = client.generate_text.call_args_list[0][0][1][0]['content']
        self.assertIn('"Blue Dream"', prompt)

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_invalid_reply_reported_per_product(self, get_client):
        get_client.return_value = mock_llm('Nothing known about this one.')
        response = self.client.post('/api/v1/ai/bulk-autofill/', {'productIds': [self.gelato.id]}, format='json')
        self.assertEqual(response.data['failed'], 1)
        self.assertEqual(response.data['results'][0]['error'], 'AI returned invalid strain data')

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_missing_key_aborts(self, get_client):
        get_client.side_effect = LLMError('AI is not configured: ANTHROPIC_API_KEY is missing', status_code=503)
        response = self.client.post('/api/v1/ai/bulk-autofill/', {
            'productIds': [self.blue_dream.id, self.gelato.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(get_client.call_count, 1)

    @patch('greenleaf.storefront.views.get_llm_client')
    def test_request_validation(self, get_client):
        url = '/api/v1/ai/bulk-autofill/'
        self.assertEqual(self.client.post(url, {'productIds': []}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)
        response = self.client.post(url, {'productIds': [self.blue_dream.id, 'abc']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'productIds must be an integer id')
        response = self.client.post(url, {'productIds': list(range(1, 22))}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        foreign = TestDataFactory.create_product(TestDataFactory.create_vendor())
        response = self.client.post(url, {'productIds': [foreign.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        get_client.assert_not_called()

    def test_employee_forbidden(self):
        employee = TestDataFactory.create_user(vendor=self.vendor, role='employee')
        self.client.authenticate_user(employee)
        response = self.client.post('/api/v1/ai/bulk-autofill/', {'productIds': [self.gelato.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SeedAIAgentsCommandTests(TestCase):
    def test_creates_then_updates(self):
        out = StringIO()
        call_command('seed_ai_agents', stdout=out)
        self.assertEqual(AIAgent.objects.count(), 2)
        self.assertIn("Created agent 'storefront_builder'", out.getvalue())

        out = StringIO()
        call_command('seed_ai_agents', '--model', 'claude-test', stdout=out)
        self.assertEqual(AIAgent.objects.count(), 2)
        self.assertEqual(AIAgent.objects.get(key='strain_autofill').model, 'claude-test')
        self.assertIn('Updated', out.getvalue())
