"""Hosted backend client tests (HTTP mocked)"""

import shutil
import tempfile
import unittest
import sys
import os
from pathlib import Path
from unittest import mock

import requests
from PIL import Image

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.client import BackendError, RemoteInspectionStore, StorageClient
from inspection.images import ImageError

API = 'https://project.example.co'


def _response(status=200, body=None, text=''):
    resp = mock.MagicMock()
    resp.status_code = status
    resp.text = text
    resp.json.return_value = body
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f'{status} error', response=resp)
    return resp


class TestRemoteInspectionStore(unittest.TestCase):

    def setUp(self):
        self.store = RemoteInspectionStore(API, 'anon-key', access_token='user-token', timeout=5)
        self.metrics = {'global': {'total_score': 16, 'total_repair_cost': 50000.0}}

    def test_requires_configuration(self):
        with mock.patch('backend.client.config.API_URL', None), mock.patch('backend.client.config.API_KEY', None):
            with self.assertRaises(BackendError):
                RemoteInspectionStore()

    @mock.patch('backend.client.requests.post')
    def test_save(self, post):
        post.return_value = _response(201, [{'id': 'abc-1'}])
        saved = self.store.save({'plate': 'ABC123'}, {'Engine': {}}, self.metrics)
        self.assertEqual(saved, {'id': 'abc-1'})

        args, kwargs = post.call_args
        self.assertEqual(args[0], f'{API}/rest/v1/inspections')
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer user-token')
        self.assertEqual(kwargs['headers']['apikey'], 'anon-key')
        self.assertEqual(kwargs['headers']['Prefer'], 'return=representation')
        self.assertEqual(kwargs['json']['inspection_data'], {'Engine': {}})
        self.assertEqual(kwargs['json']['total_score'], 16)
        self.assertEqual(kwargs['json']['total_repair_cost'], 50000.0)
        self.assertEqual(kwargs['timeout'], 5)

    @mock.patch('backend.client.requests.post')
    def test_save_without_plate(self, post):
        with self.assertRaises(BackendError):
            self.store.save({'brand': 'Toyota'}, {}, self.metrics)
        post.assert_not_called()

    @mock.patch('backend.client.requests.post')
    def test_save_http_error(self, post):
        post.return_value = _response(401, {'message': 'JWT expired'})
        with self.assertRaises(BackendError) as ctx:
            self.store.save({'plate': 'ABC123'}, {}, self.metrics)
        self.assertIn('401', str(ctx.exception))
        self.assertIn('JWT expired', str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, requests.HTTPError)

    @mock.patch('backend.client.requests.post')
    def test_save_network_error(self, post):
        post.side_effect = requests.ConnectionError('offline')
        with self.assertRaises(BackendError):
            self.store.save({'plate': 'ABC123'}, {}, self.metrics)

    @mock.patch('backend.client.requests.get')
    def test_load(self, get):
        get.return_value = _response(200, [{'id': 'abc-1', 'vehicle_info': {'plate': 'ABC123'},
                                            'inspection_data': {'Engine': {'Battery': {'score': 7}}}}])
        loaded = self.store.load('abc-1')
        self.assertEqual(loaded['vehicle_info']['plate'], 'ABC123')
        self.assertEqual(loaded['items']['Engine']['Battery']['score'], 7)
        self.assertEqual(get.call_args.kwargs['params']['id'], 'eq.abc-1')

    @mock.patch('backend.client.requests.get')
    def test_load_not_found(self, get):
        get.return_value = _response(200, [])
        with self.assertRaises(BackendError):
            self.store.load('missing')

    @mock.patch('backend.client.requests.get')
    def test_list_recent(self, get):
        get.return_value = _response(200, [{'id': '2'}, {'id': '1'}])
        rows = self.store.list_recent(limit=10)
        self.assertEqual([r['id'] for r in rows], ['2', '1'])
        params = get.call_args.kwargs['params']
        self.assertEqual(params['order'], 'created_at.desc')
        self.assertEqual(params['limit'], '10')
        self.assertNotIn('or', params)

    @mock.patch('backend.client.requests.get')
    def test_list_search_and_sort(self, get):
        get.return_value = _response(200, [])
        self.store.list_recent(search=' ABC(1)* ', sort='score_desc')
        params = get.call_args.kwargs['params']
        self.assertEqual(params['order'], 'total_score.desc')
        self.assertIn('vehicle_info->>plate.ilike.*ABC1*', params['or'])
        self.assertIn('vehicle_info->>seller.ilike.*ABC1*', params['or'])
        self.assertTrue(params['or'].startswith('(') and params['or'].endswith(')'))

    @mock.patch('backend.client.requests.get')
    def test_list_unknown_sort(self, get):
        with self.assertRaises(BackendError):
            self.store.list_recent(sort='colour')
        get.assert_not_called()

    @mock.patch('backend.client.requests.patch')
    def test_update(self, patch):
        patch.return_value = _response(200, [{'id': 'abc-1'}])
        saved = self.store.update('abc-1', {'plate': 'ABC123'}, {'Engine': {}}, self.metrics)
        self.assertEqual(saved, {'id': 'abc-1'})

        args, kwargs = patch.call_args
        self.assertEqual(args[0], f'{API}/rest/v1/inspections')
        self.assertEqual(kwargs['params'], {'id': 'eq.abc-1'})
        self.assertEqual(kwargs['json']['total_repair_cost'], 50000.0)
        self.assertIn('updated_at', kwargs['json'])
        self.assertEqual(kwargs['headers']['Prefer'], 'return=representation')

    @mock.patch('backend.client.requests.patch')
    def test_update_missing_row(self, patch):
        patch.return_value = _response(200, [])
        with self.assertRaises(BackendError) as ctx:
            self.store.update('gone', {'plate': 'ABC123'}, {}, self.metrics)
        self.assertIn('not found', str(ctx.exception))

    @mock.patch('backend.client.requests.delete')
    def test_delete(self, delete):
        delete.return_value = _response(200, [{'id': 'abc-1'}])
        self.store.delete('abc-1')
        self.assertEqual(delete.call_args.args[0], f'{API}/rest/v1/inspections')
        self.assertEqual(delete.call_args.kwargs['params'], {'id': 'eq.abc-1'})

    @mock.patch('backend.client.requests.delete')
    def test_delete_errors(self, delete):
        delete.return_value = _response(200, [])
        with self.assertRaises(BackendError):
            self.store.delete('gone')
        delete.return_value = _response(403, {'message': 'permission denied'})
        with self.assertRaises(BackendError) as ctx:
            self.store.delete('abc-1')
        self.assertIn('permission denied', str(ctx.exception))


class TestStorageClient(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.image = self.temp_dir / 'glass.png'
        Image.new('RGB', (20, 10), (0, 0, 0)).save(self.image, format='PNG')
        self.client = StorageClient(API, 'anon-key', bucket='photos', fallback_bucket='images')

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    @mock.patch('backend.client.requests.post')
    def test_upload(self, post):
        post.return_value = _response(200, {'Key': 'x'})
        ref = self.client.upload(self.image, 'insp1', 'Bodywork', 'Glass')
        url = post.call_args.args[0]
        self.assertTrue(url.startswith(f'{API}/storage/v1/object/photos/insp1/Bodywork/Glass/'))
        self.assertTrue(ref.url.startswith(f'{API}/storage/v1/object/public/photos/insp1/Bodywork/Glass/'))
        self.assertTrue(ref.file_name.endswith('.png'))
        self.assertEqual(ref.original_name, 'glass.png')
        self.assertEqual((ref.width, ref.height), (20, 10))
        self.assertEqual(post.call_args.kwargs['headers']['Content-Type'], 'image/png')

    @mock.patch('backend.client.requests.post')
    def test_upload_falls_back_when_bucket_missing(self, post):
        post.side_effect = [
            _response(404, {'error': 'Bucket not found'}, text='{"error":"Bucket not found"}'),
            _response(200, {'Key': 'x'}),
        ]
        with self.assertLogs('backend.client', level='WARNING'):
            ref = self.client.upload(self.image, 'insp1', 'Bodywork', 'Glass')
        self.assertEqual(post.call_count, 2)
        self.assertIn('/object/images/', post.call_args.args[0])
        self.assertIn('/object/public/images/', ref.url)

    @mock.patch('backend.client.requests.post')
    def test_upload_error(self, post):
        post.return_value = _response(500, {'message': 'storage down'})
        with self.assertRaises(BackendError):
            self.client.upload(self.image, 'insp1', 'Bodywork', 'Glass')

    @mock.patch('backend.client.requests.post')
    def test_upload_rejects_large_file(self, post):
        with mock.patch('inspection.images.config.MAX_IMAGE_BYTES', 10):
            with self.assertRaises(ImageError):
                self.client.upload(self.image, 'insp1', 'Bodywork', 'Glass')
        post.assert_not_called()

    @mock.patch('backend.client.requests.delete')
    def test_delete(self, delete):
        delete.return_value = _response(200, [])
        self.client.delete('insp1/Bodywork/Glass/1.png')
        self.assertEqual(delete.call_args.args[0], f'{API}/storage/v1/object/photos')
        self.assertEqual(delete.call_args.kwargs['json'], {'prefixes': ['insp1/Bodywork/Glass/1.png']})


if __name__ == '__main__':
    unittest.main()
