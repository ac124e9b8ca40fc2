import io
import shutil
import tempfile

from django.contrib.auth.models import User
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from PIL import Image
from rest_framework import status

from soltip.seeds import permissions_for_role

from .base import WALLET_A, APITestCase, TestDataFactory, make_image_bytes


class UserAdministrationTests(APITestCase):

    def setUp(self):
        super().setUp()
        self.admin = TestDataFactory.create_admin()
        self.alice = TestDataFactory.create_user(email='alice@example.com', username='alice', display_name='Alice')
        self.carol = TestDataFactory.create_user(email='carol@example.com', username='carol', status='suspended')

    def test_list_requires_users_manage(self):
        self.authenticate(self.alice)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(response.json()['success'])

    def test_list_with_filters(self):
        self.authenticate(self.admin)
        response = self.client.get('/api/v1/users/', {'status': 'suspended'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        users = response.json()['data']['users']
        self.assertEqual([u['username'] for u in users], ['carol'])

        response = self.client.get('/api/v1/users/', {'search': 'ALICE'})
        self.assertEqual(response.json()['data']['pagination']['total'], 1)

    def test_user_detail_self_or_manager(self):
        self.authenticate(self.alice)
        own = self.client.get(f'/api/v1/users/{self.alice.pk}/')
        self.assertEqual(own.status_code, status.HTTP_200_OK)
        other = self.client.get(f'/api/v1/users/{self.carol.pk}/')
        self.assertEqual(other.status_code, status.HTTP_403_FORBIDDEN)

        self.authenticate(self.admin)
        self.assertEqual(self.client.get(f'/api/v1/users/{self.carol.pk}/').status_code, status.HTTP_200_OK)

    def test_unknown_user(self):
        self.authenticate(self.admin)
        response = self.client.get('/api/v1/users/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_self(self):
        self.authenticate(self.alice)
        response = self.client.delete(f'/api/v1/users/{self.alice.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(User.objects.filter(pk=self.alice.pk).exists())

    def test_update_status(self):
        self.authenticate(self.admin)
        response = self.client.put(f'/api/v1/users/{self.carol.pk}/status/', {'status': 'active'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.carol.creator.refresh_from_db()
        self.assertEqual(self.carol.creator.status, 'active')

        response = self.client.put(f'/api/v1/users/{self.carol.pk}/status/', {'status': 'sleeping'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_role_change_keeps_custom_permissions(self):
        creator = self.alice.creator
        creator.permissions = permissions_for_role('creator') + ['creators:feature']
        creator.save()

        self.authenticate(self.admin)
        response = self.client.put(f'/api/v1/users/{self.alice.pk}/role/', {'role': 'support'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        creator.refresh_from_db()
        self.assertEqual(creator.role, 'support')
        self.assertIn('support:view-tickets', creator.permissions)
        self.assertIn('creators:feature', creator.permissions)
        self.assertNotIn('analytics:view', creator.permissions)

    def test_custom_permission_add_and_remove(self):
        self.authenticate(self.admin)
        url = f'/api/v1/users/{self.alice.pk}/permissions/'

        response = self.client.post(url, {'permission': 'creators:feature'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('creators:feature', response.json()['data']['permissions'])

        self.assertEqual(self.client.post(url, {'permission': 'creators:feature'}).status_code, 400)
        self.assertEqual(self.client.post(url, {'permission': 'made:up'}).status_code, 400)

        response = self.client.delete(url, {'permission': 'creators:feature'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.delete(url, {'permission': 'wallet:withdraw'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_toggle_featured(self):
        self.authenticate(self.admin)
        response = self.client.put(f'/api/v1/users/{self.alice.pk}/featured/')
        self.assertTrue(response.json()['data']['user']['isFeatured'])
        response = self.client.put(f'/api/v1/users/{self.alice.pk}/featured/')
        self.assertFalse(response.json()['data']['user']['isFeatured'])


class OwnProfileTests(APITestCase):

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user(email='alice@example.com', username='alice')
        self.creator = self.user.creator
        self.authenticate(self.user)

    def test_update_profile(self):
        response = self.client.put('/api/v1/users/profile/', {
            'displayName': 'Alice Painter',
            'bio': 'Paintings',
            'username': 'alice_paints',
            'socialLinks': {'github': 'https://github.com/alice'},
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.creator.refresh_from_db()
        self.assertEqual(self.creator.username, 'alice_paints')
        self.assertEqual(self.creator.social_links, {'github': 'https://github.com/alice'})

    def test_update_profile_username_taken(self):
        TestDataFactory.create_user(username='carol')
        response = self.client.put('/api/v1/users/profile/', {'username': 'carol'})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_update_wallet(self):
        response = self.client.put('/api/v1/users/profile/wallet/', {'withdrawalWalletAddress': WALLET_A})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.creator.refresh_from_db()
        self.assertEqual(self.creator.withdrawal_wallet_address, WALLET_A)

        response = self.client.put('/api/v1/users/profile/wallet/', {'withdrawalWalletAddress': 'nope'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_change_password(self):
        response = self.client.put('/api/v1/users/password/', {
            'currentPassword': 'wrongpass', 'newPassword': 'anotherpass1',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.put('/api/v1/users/password/', {
            'currentPassword': 'strongpass123', 'newPassword': 'anotherpass1',
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('anotherpass1'))

    def test_update_customization(self):
        response = self.client.put('/api/v1/users/customization/', {'showTipCounter': False})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.json()['data']['customization']['showTipCounter'])

    def test_customization_needs_permission(self):
        self.creator.permissions = permissions_for_role('support')
        self.creator.save()
        response = self.client.put('/api/v1/users/customization/', {'showTipCounter': False})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_tip_settings(self):
        response = self.client.get('/api/v1/users/tip-settings/')
        self.assertEqual(response.json()['data']['tipSettings']['accentColor'], '#8B5CF6')

        response = self.client.put('/api/v1/users/tip-settings/', {'accentColor': '#00ff00', 'minimumAmount': 2})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        settings = response.json()['data']['tipSettings']
        self.assertEqual(settings['accentColor'], '#00ff00')
        self.assertEqual(settings['defaultMessage'], 'Thanks for supporting my work!')

        response = self.client.put('/api/v1/users/tip-settings/', {'accentColor': 'green'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class AvatarTests(APITestCase):

    def setUp(self):
        super().setUp()
        self.media_root = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media_root)
        self.override.enable()
        self.user = TestDataFactory.create_user(username='alice')
        self.authenticate(self.user)

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def test_upload_and_remove(self):
        upload = SimpleUploadedFile('face.png', make_image_bytes(), content_type='image/png')
        response = self.client.post('/api/v1/users/avatar/', {'avatar': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('creator_pics/face', response.json()['data']['user']['avatarUrl'])

        response = self.client.delete('/api/v1/users/avatar/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.json()['data']['user']['avatarUrl'])

    def test_palette_png_keeps_colours(self):
        bio = io.BytesIO()
        Image.new('RGB', (4, 4), (0, 200, 0)).convert('P', palette=Image.Palette.ADAPTIVE).save(bio, format='PNG')
        upload = SimpleUploadedFile('leaf.png', bio.getvalue(), content_type='image/png')
        response = self.client.post('/api/v1/users/avatar/', {'avatar': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.user.creator.refresh_from_db()
        with Image.open(self.user.creator.avatar.path) as stored:
            self.assertEqual(stored.mode, 'P')
            self.assertEqual(stored.convert('RGB').getpixel((0, 0)), (0, 200, 0))

    def test_rejects_non_image(self):
        upload = SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain')
        response = self.client.post('/api/v1/users/avatar/', {'avatar': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PublicProfileTests(APITestCase):

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user(username='alice', display_name='Alice',
                                                deposit_wallet_address=WALLET_A)

    def test_public_profile(self):
        TestDataFactory.create_transaction(self.user.creator)
        TestDataFactory.create_transaction(self.user.creator, status='pending')
        response = self.client.get('/api/v1/users/profile/Alice/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.json()['data']['user']
        self.assertEqual(data['displayName'], 'Alice')
        self.assertEqual(data['depositWalletAddress'], WALLET_A)
        self.assertEqual(len(data['customization']['tipOptions']), 4)
        self.assertEqual(data['customization']['minimumTipAmount'], 1)
        self.assertEqual(data['tipCount'], 1)
        self.assertNotIn('email', data)

    def test_username_route_and_hidden_counter(self):
        creator = self.user.creator
        creator.customization = {'showTipCounter': False}
        creator.save()
        response = self.client.get('/api/v1/users/username/alice/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('tipCount', response.json()['data']['user'])

    def test_inactive_creator_hidden(self):
        TestDataFactory.create_user(username='carol', status='pending')
        response = self.client.get('/api/v1/users/profile/carol/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_featured(self):
        TestDataFactory.create_user(username='carol', is_featured=True)
        TestDataFactory.create_user(username='dave', is_featured=True, status='suspended')
        response = self.client.get('/api/v1/users/featured/')
        creators = response.json()['data']['creators']
        self.assertEqual([c['username'] for c in creators], ['carol'])

    def test_stale_cookie_ignored_on_public_page(self):
        self.client.cookies['accessToken'] = 'expired-token'
        response = self.client.get('/api/v1/users/profile/alice/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
