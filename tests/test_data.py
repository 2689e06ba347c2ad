import os
import tempfile
import unittest

from review_sentiment.data import FormatError, Record, load, parse_line, records_to_frame


class TestParseLine(unittest.TestCase):
    def test_text_and_label(self):
        self.assertEqual(parse_line("great movie\t1"), Record(text=["great", "movie"], label=1))

    def test_whitespace_is_collapsed(self):
        rec = parse_line("  not   worth it \t 0\n")
        self.assertEqual(rec.text, ["not", "worth", "it"])
        self.assertEqual(rec.label, 0)

    def test_missing_tab(self):
        with self.assertRaises(FormatError):
            parse_line("great movie 1")

    def test_blank_line(self):
        with self.assertRaises(FormatError):
            parse_line("\n")

    def test_non_integer_label(self):
        with self.assertRaises(FormatError):
            parse_line("great movie\tpositive")

    def test_label_out_of_range(self):
        with self.assertRaises(FormatError):
            parse_line("great movie\t2")

    def test_format_error_is_value_error(self):
        self.assertTrue(issubclass(FormatError, ValueError))


class TestLoad(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, name, content):
        path = os.path.join(self.dir, name)
        with open(path, 'w', encoding='utf-8') as fh:
            fh.write(content)
        return path

    def test_load_records(self):
        path = self._write('reviews.txt', "A very good film\t1\nSlow and dull\t0\n")
        records = load(path)
        self.assertEqual(len(records), 2)
        self.assertEqual(records[0].text, ["A", "very", "good", "film"])
        self.assertEqual([r.label for r in records], [1, 0])

    def test_malformed_line_reports_position(self):
        path = self._write('bad.txt', "good\t1\nno separator here\nbad\t0\n")
        with self.assertRaises(FormatError) as cm:
            load(path)
        self.assertEqual(cm.exception.line_no, 2)
        self.assertEqual(cm.exception.path, path)
        self.assertIn(':2:', str(cm.exception))

    def test_skip_malformed(self):
        path = self._write('bad.txt', "good\t1\nno separator here\nbad\tzero\nbad\t0\n")
        with self.assertLogs('review_sentiment', level='WARNING') as logs:
            records = load(path, skip_malformed=True)
        self.assertEqual([r.label for r in records], [1, 0])
        self.assertTrue(any('Skipped 2 malformed' in line for line in logs.output))

    def test_missing_file(self):
        with self.assertRaises(OSError):
            load(os.path.join(self.dir, 'does_not_exist.txt'))

    def test_records_to_frame(self):
        df = records_to_frame([Record(["good", "fun"], 1), Record(["dull"], 0)])
        self.assertEqual(list(df.columns), ['review', 'label', 'n_tokens'])
        self.assertEqual(df['review'].tolist(), ["good fun", "dull"])
        self.assertEqual(df['n_tokens'].tolist(), [2, 1])


if __name__ == '__main__':
    unittest.main()
