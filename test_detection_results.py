#!/usr/bin/env python3
"""DetectionResults / ignore 제안 워크플로 - 단위 테스트"""
import hashlib
import io
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest.mock import Mock

sys.path.insert(0, os.path.dirname(__file__))
from detection_results import DetectionResults, Category, MESSAGE_WRAP_WIDTH
from ignore_config import IgnoreConfig, PromptContext, CONFIRMATION_MESSAGE

EXISTING_CONTENT = """fileignoreconfig:
- filename: existing.pem
  checksum: 123444ddssa75333b25b6275f97680604add51b84eb8f4a3b9dcbbc652e6f27ac
  ignore_detectors: []
scopeconfig: []
"""


def _sha(path):
    return hashlib.sha256(path.encode()).hexdigest()


class TestDetectionResults(unittest.TestCase):
    def test_new_results_are_successful(self):
        results = DetectionResults()
        self.assertTrue(results.successful())
        self.assertFalse(results.has_failures())
        self.assertFalse(results.has_detection_messages())

    def test_fail_makes_results_unsuccessful(self):
        results = DetectionResults()
        results.fail('some_filename', Category.FILENAME, 'Bomb', [])
        self.assertFalse(results.successful())
        self.assertTrue(results.has_failures())
        self.assertEqual(results.summary.filename, 1)

    def test_multiple_errors_against_single_file(self):
        results = DetectionResults()
        results.fail('some_filename', Category.FILENAME, 'Bomb', [])
        results.fail('some_filename', Category.FILENAME, 'Complete & utter failure', [])
        results.fail('another_filename', Category.FILENAME, 'Complete & utter failure', [])
        self.assertEqual(len(results.get_failures('some_filename')), 2)
        self.assertEqual(len(results.get_failures('another_filename')), 1)
        self.assertEqual(len(results.results), 2)

    def test_same_failure_appends_commits(self):
        results = DetectionResults()
        results.fail('a.txt', Category.FILECONTENT, 'Bomb', ['c1'])
        results.fail('a.txt', Category.FILECONTENT, 'Bomb', ['c2', 'c3'])
        failures = results.get_failures('a.txt')
        self.assertEqual(len(failures), 1)
        self.assertEqual(failures[0].commits, ['c1', 'c2', 'c3'])
        # 카운터는 호출 횟수
        self.assertEqual(results.summary.filecontent, 2)

    def test_same_message_different_category_is_distinct(self):
        results = DetectionResults()
        results.fail('a.txt', Category.FILECONTENT, 'Bomb', [])
        results.fail('a.txt', Category.FILESIZE, 'Bomb', [])
        self.assertEqual(len(results.get_failures('a.txt')), 2)

    def test_commits_list_is_copied(self):
        results = DetectionResults()
        commits = ['c1']
        results.fail('a.txt', Category.FILECONTENT, 'Bomb', commits)
        results.fail('a.txt', Category.FILECONTENT, 'Bomb', ['c2'])
        self.assertEqual(commits, ['c1'])

    def test_get_failures_for_untouched_path(self):
        self.assertEqual(DetectionResults().get_failures('nothing'), [])

    def test_warn_does_not_fail(self):
        results = DetectionResults()
        results.warn('a.txt', Category.FILECONTENT, 'careful', [])
        results.warn('a.txt', Category.FILECONTENT, 'careful', ['c1'])
        self.assertTrue(results.successful())
        self.assertTrue(results.has_warnings())
        self.assertEqual(results.summary.warnings, 2)
        self.assertEqual(len(results.results[0].warnings), 1)
        self.assertEqual(results.results[0].warnings[0].commits, ['c1'])

    def test_ignore_is_unique_per_category_but_counts_every_call(self):
        results = DetectionResults()
        results.ignore('a.txt', Category.FILECONTENT)
        results.ignore('a.txt', Category.FILECONTENT)
        results.ignore('a.txt', Category.FILENAME)
        self.assertTrue(results.successful())
        self.assertTrue(results.has_ignores())
        self.assertEqual(results.summary.ignores, 3)
        ignores = results.results[0].ignores
        self.assertEqual([d.category for d in ignores], [Category.FILECONTENT, Category.FILENAME])
        self.assertEqual(ignores[0].message, '')

    def test_category_accepts_string_value(self):
        results = DetectionResults()
        results.fail('a.txt', 'filesize', 'too big', [])
        self.assertEqual(results.summary.filesize, 1)

    def test_unknown_category_rejected(self):
        with self.assertRaises(ValueError):
            DetectionResults().fail('a.txt', 'severity', 'Bomb', [])

    def test_report_file_failures(self):
        results = DetectionResults()
        results.fail('some_filename', Category.FILECONTENT, 'Bomb', [])
        results.fail('some_filename', Category.FILECONTENT, 'Complete & utter failure', [])
        results.fail('another_filename', Category.FILECONTENT, 'Complete & utter failure', [])
        rows = results.report_file_failures('some_filename')
        self.assertEqual(rows, [('some_filename', 'Bomb'), ('some_filename', 'Complete & utter failure')])
        self.assertEqual(results.report_file_failures('untouched'), [])

    def test_long_messages_are_split(self):
        results = DetectionResults()
        message = 'x' * MESSAGE_WRAP_WIDTH + 'tail'
        results.warn('a.txt', Category.FILECONTENT, message, [])
        row = results.report_file_warnings('a.txt')[0]
        self.assertEqual(row[1], 'x' * MESSAGE_WRAP_WIDTH + '\ntail')
        # 원본 메시지는 그대로
        self.assertEqual(results.results[0].warnings[0].message, message)

    def test_to_dict_shape(self):
        results = DetectionResults()
        results.fail('a.txt', Category.FILECONTENT, 'Bomb', ['c1'])
        d = results.to_dict()
        self.assertEqual(d['summary']['types']['filecontent'], 1)
        self.assertEqual(d['results'][0]['filename'], 'a.txt')
        self.assertEqual(d['results'][0]['failure_list'][0],
                         {'type': 'filecontent', 'message': 'Bomb', 'commits': ['c1']})

    def test_report_warnings_renders_table(self):
        results = DetectionResults()
        self.assertEqual(results.report_warnings(), '')
        results.warn('a.txt', Category.FILECONTENT, 'careful', [])
        with redirect_stdout(io.StringIO()):
            rendered = results.report_warnings()
        self.assertIn('a.txt', rendered)
        self.assertIn('careful', rendered)


class TestIgnoreSuggestion(unittest.TestCase):
    def setUp(self):
        fd, self.ignore_file = tempfile.mkstemp(suffix='.commithoundrc')
        os.close(fd)
        with open(self.ignore_file, 'w', encoding='utf-8') as f:
            f.write(EXISTING_CONTENT)
        self.prompt = Mock()

    def tearDown(self):
        os.unlink(self.ignore_file)

    def _read(self):
        with open(self.ignore_file, 'r', encoding='utf-8') as f:
            return f.read()

    def _report(self, results, interactive):
        out = io.StringIO()
        with redirect_stdout(out):
            rendered = results.report(self.ignore_file, PromptContext(interactive, self.prompt))
        return rendered, out.getvalue()

    def test_no_prompt_without_failures(self):
        results = DetectionResults()
        results.ignore('a.txt', Category.FILECONTENT)
        rendered, _ = self._report(results, True)
        self.assertEqual(rendered, '')
        self.prompt.confirm.assert_not_called()
        self.assertEqual(self._read(), EXISTING_CONTENT)

    def test_declined_entry_is_not_added(self):
        self.prompt.confirm.return_value = False
        results = DetectionResults()
        results.fail('some_file.pem', Category.FILECONTENT, 'Bomb', [])
        rendered, _ = self._report(results, True)
        self.prompt.confirm.assert_called_once_with(CONFIRMATION_MESSAGE)
        self.assertIn('some_file.pem', rendered)
        self.assertEqual(self._read(), EXISTING_CONTENT)

    def test_non_interactive_prints_suggestion_only(self):
        results = DetectionResults()
        results.fail('some_file.pem', Category.FILECONTENT, 'Bomb', [])
        _, printed = self._report(results, False)
        self.prompt.confirm.assert_not_called()
        self.assertEqual(self._read(), EXISTING_CONTENT)
        self.assertIn('- filename: some_file.pem', printed)
        self.assertIn(f'checksum: {_sha("some_file.pem")}', printed)

    def test_confirmed_entry_is_appended(self):
        self.prompt.confirm.return_value = True
        results = DetectionResults()
        results.fail('some_file.pem', Category.FILECONTENT, 'Bomb', [])
        results.fail('some_file.pem', Category.FILECONTENT, 'Bomb', [])
        self._report(results, True)
        self.prompt.confirm.assert_called_once_with(CONFIRMATION_MESSAGE)
        expected = EXISTING_CONTENT + (
            "fileignoreconfig:\n"
            "- filename: some_file.pem\n"
            f"  checksum: {_sha('some_file.pem')}\n"
            "  ignore_detectors: []\n"
            "scopeconfig: []\n"
        )
        self.assertEqual(self._read(), expected)

    def test_entry_appended_after_content_without_trailing_newline(self):
        with open(self.ignore_file, 'w', encoding='utf-8') as f:
            f.write(EXISTING_CONTENT.rstrip('\n'))
        self.prompt.confirm.return_value = True
        results = DetectionResults()
        results.fail('b.pem', Category.FILECONTENT, 'Bomb', [])
        self._report(results, True)
        content = self._read()
        self.assertTrue(content.startswith(EXISTING_CONTENT + 'fileignoreconfig:\n'))
        config = IgnoreConfig.load(self.ignore_file)
        self.assertEqual([e.filename for e in config.file_ignores], ['existing.pem', 'b.pem'])

    def test_multiple_confirmed_entries_in_one_document(self):
        with open(self.ignore_file, 'w', encoding='utf-8') as f:
            f.write('')
        self.prompt.confirm.return_value = True
        results = DetectionResults()
        results.fail('some_file.pem', Category.FILECONTENT, 'Bomb', [])
        results.fail('another.pem', Category.FILECONTENT, 'password', [])
        self._report(results, True)
        self.assertEqual(self.prompt.confirm.call_count, 2)
        expected = (
            "fileignoreconfig:\n"
            "- filename: some_file.pem\n"
            f"  checksum: {_sha('some_file.pem')}\n"
            "  ignore_detectors: []\n"
            "- filename: another.pem\n"
            f"  checksum: {_sha('another.pem')}\n"
            "  ignore_detectors: []\n"
            "scopeconfig: []\n"
        )
        self.assertEqual(self._read(), expected)

    def test_only_confirmed_entries_are_kept(self):
        with open(self.ignore_file, 'w', encoding='utf-8') as f:
            f.write('')
        self.prompt.confirm.side_effect = [False, True]
        results = DetectionResults()
        results.fail('some_file.pem', Category.FILECONTENT, 'Bomb', [])
        results.fail('another.pem', Category.FILECONTENT, 'password', [])
        self._report(results, True)
        content = self._read()
        self.assertNotIn('some_file.pem', content)
        self.assertIn('- filename: another.pem', content)

    def test_write_failure_is_swallowed(self):
        self.prompt.confirm.return_value = True
        results = DetectionResults()
        results.fail('some_file.pem', Category.FILECONTENT, 'Bomb', [])
        missing = os.path.join(tempfile.gettempdir(), 'no-such-dir-commithound', 'rc')
        with self.assertLogs('commithound', level='ERROR'):
            with redirect_stdout(io.StringIO()):
                results.report(missing, PromptContext(True, self.prompt))
        self.assertFalse(results.successful())


if __name__ == '__main__':
    unittest.main()
