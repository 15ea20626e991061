# Copyright (c) 2013, Clemson University
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# * Redistributions of source code must retain the above copyright notice, this
#   list of conditions and the following disclaimer.
#
# * Redistributions in binary form must reproduce the above copyright notice,
#   this list of conditions and the following disclaimer in the documentation
#   and/or other materials provided with the distribution.
#
# * Neither the name of the {organization} nor the names of its
#   contributors may be used to endorse or promote products derived from
#   this software without specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
# SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
# OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.

import common
from multivcs.common import (
    AUTHOR, AUTH_COMM, COMMITTER, CommandFailed, Result, Results,
    Revision, UnknownVCSType, UTCOffset, default_schemes, get_scheme,
    parse_isodate, run, run_in_dir, set_default_schemes, split_semvers,
)

import datetime
import os
import unittest
from unittest import mock


class RunTest(unittest.TestCase):
    def test_empty_args_dropped(self):
        popen = common.FakePopen()
        with mock.patch('multivcs.common.subprocess.Popen', popen):
            result = run('git', 'log', '', None, '-1', 0)
        self.assertEqual([['git', 'log', '-1', '0']], popen.argvs)
        self.assertEqual('git log -1 0', result.cmd)

    def test_output_captured(self):
        popen = common.FakePopen(lambda argv, kwargs: (0, 'hello\n'))
        with mock.patch('multivcs.common.subprocess.Popen', popen):
            result = run('hg', 'identify', cwd='/tmp')
        self.assertEqual('hello\n', result.output)
        self.assertEqual('/tmp', popen.calls[0][1]['cwd'])

    def test_nonzero_exit(self):
        popen = common.FakePopen(lambda argv, kwargs: (128, 'fatal: nope\n'))
        with mock.patch('multivcs.common.subprocess.Popen', popen):
            with self.assertRaises(CommandFailed) as cm:
                run('git', 'fetch', 'origin')
        self.assertEqual(128, cm.exception.returncode)
        self.assertEqual(Result('git fetch origin', 'fatal: nope\n'), cm.exception.result)

    def test_missing_tool(self):
        def popen(argv, **kwargs):
            raise FileNotFoundError(2, 'No such file or directory', argv[0])
        with mock.patch('multivcs.common.subprocess.Popen', popen):
            with self.assertRaises(CommandFailed) as cm:
                run('bzr', 'info')
        self.assertIsNone(cm.exception.returncode)
        self.assertEqual('bzr info', cm.exception.result.cmd)


class RunInDirTest(common.TempDirTest):
    def test_restores_cwd(self):
        olddir = os.getcwd()
        seen = []

        def handler(argv, kwargs):
            seen.append(os.getcwd())
            return 0, ''
        with mock.patch('multivcs.common.subprocess.Popen', common.FakePopen(handler)):
            run_in_dir(self.dir, 'svnversion', '.')
        self.assertEqual([os.path.realpath(self.dir)], [os.path.realpath(d) for d in seen])
        self.assertEqual(olddir, os.getcwd())

    def test_restores_cwd_on_failure(self):
        olddir = os.getcwd()
        popen = common.FakePopen(lambda argv, kwargs: (1, 'boom'))
        with mock.patch('multivcs.common.subprocess.Popen', popen):
            with self.assertRaises(CommandFailed):
                run_in_dir(self.dir, 'svnversion', '.')
        self.assertEqual(olddir, os.getcwd())


class ResultsTest(unittest.TestCase):
    def test_run_records_failures(self):
        def handler(argv, kwargs):
            if argv[1] == 'bad':
                return 1, 'error\n'
            return 0, 'ok\n'
        results = Results()
        with mock.patch('multivcs.common.subprocess.Popen', common.FakePopen(handler)):
            results.run('git', 'good')
            with self.assertRaises(CommandFailed) as cm:
                results.run('git', 'bad')
        self.assertEqual(['git good', 'git bad'], [r.cmd for r in results])
        self.assertIs(results, cm.exception.results)
        self.assertEqual('git bad', results.last().cmd)

    def test_empty(self):
        results = Results()
        self.assertEqual(0, len(results))
        self.assertIsNone(results.last())
        self.assertEqual([], results.all())
        self.assertEqual('', str(results))

    def test_str(self):
        results = Results([Result('git fetch', ''), Result('git pull', 'Already up to date.\n')])
        correct = (
            'cmd 1: git fetch, output 1:\n'
            '[No output from command]\n'
            'cmd 2: git pull, output 2:\n'
            '  Already up to date.\n'
        )
        self.assertEqual(correct, str(results))

    def test_result_str(self):
        result = Result('svn update', 'Updating .\nAt revision 5.\n')
        self.assertEqual('cmd: svn update, output:\n  Updating .\n  At revision 5.\n', str(result))

    def test_extend(self):
        a = Results([Result('hg pull', '')])
        b = Results([Result('hg update', '')])
        a.extend(b)
        self.assertEqual(['hg pull', 'hg update'], [r.cmd for r in a.all()])


class RevisionTest(unittest.TestCase):
    def test_core_only_fields_not_fetched(self):
        rev = Revision('abc123')
        self.assertEqual('abc123', rev.core)
        for field in ('semvers', 'tags', 'branches', 'ancestors', 'comment',
                      'author', 'author_id', 'author_time', 'committer',
                      'committer_id', 'committer_time'):
            self.assertIsNone(getattr(rev, field), field)

    def test_no_tags_is_not_unfetched(self):
        rev = Revision('abc123')
        rev.set_tags([])
        self.assertEqual([], rev.tags)
        self.assertEqual([], rev.semvers)

    def test_set_tags_splits_semvers(self):
        rev = Revision('1')
        rev.set_tags(['v1.2.3', 'release', '2.0.0-rc.1+build.5', 'v1.2'])
        self.assertEqual(['v1.2.3', '2.0.0-rc.1+build.5'], rev.semvers)
        self.assertEqual(['release', 'v1.2'], rev.tags)

    def test_user_roles(self):
        rev = Revision('1')
        rev.set_user_info(AUTHOR, 'Alice', 'alice@example.com')
        rev.set_user_info(COMMITTER, 'Bob', 'bob@example.com')
        self.assertEqual(('Alice', 'alice@example.com'), rev.user_info(AUTHOR))
        self.assertEqual(('Bob', 'bob@example.com'), rev.user_info(COMMITTER))
        rev.set_user_info(AUTH_COMM, 'Carol', None)
        self.assertEqual(('Carol', None), rev.user_info(AUTHOR))
        self.assertEqual(('Carol', None), rev.user_info(COMMITTER))

    def test_timestamps(self):
        ts = datetime.datetime(2015, 8, 22, 17, 8, 37, tzinfo=UTCOffset(0))
        rev = Revision('1')
        rev.set_timestamp(AUTH_COMM, ts)
        self.assertEqual(ts, rev.timestamp(AUTHOR))
        self.assertEqual(ts, rev.timestamp(COMMITTER))

    def test_unknown_role(self):
        rev = Revision('1')
        self.assertRaises(ValueError, rev.user_info, 'reviewer')
        self.assertRaises(ValueError, rev.set_timestamp, 'reviewer', None)


class HelpersTest(unittest.TestCase):
    def tearDown(self):
        set_default_schemes('git')

    def test_default_schemes(self):
        self.assertEqual(('git', 'https', 'http', 'git+ssh'), default_schemes('git'))
        self.assertEqual(('https', 'http', 'ssh'), default_schemes('hg'))
        self.assertEqual(('https', 'http', 'svn', 'svn+ssh'), default_schemes('svn'))
        self.assertEqual(('https', 'http', 'bzr', 'bzr+ssh'), default_schemes('bzr'))

    def test_set_default_schemes(self):
        set_default_schemes('git', ['https'])
        self.assertEqual(('https',), default_schemes('git'))
        set_default_schemes('git')
        self.assertEqual(('git', 'https', 'http', 'git+ssh'), default_schemes('git'))

    def test_unknown_vcs(self):
        self.assertRaises(UnknownVCSType, default_schemes, 'cvs')
        self.assertRaises(UnknownVCSType, set_default_schemes, 'cvs', ['https'])

    def test_get_scheme(self):
        self.assertEqual('git+ssh', get_scheme('git+ssh://host/repo'))
        self.assertEqual('', get_scheme('owner/repo'))
        self.assertEqual('', get_scheme('git@github.com:owner/repo'))
        self.assertEqual('', get_scheme(''))

    def test_split_semvers(self):
        self.assertEqual((['1.0.0'], ['tip']), split_semvers(['1.0.0', 'tip']))

    def test_parse_isodate(self):
        dt = parse_isodate('2014-09-11 17:45:32 -0700')
        self.assertEqual(datetime.datetime(2014, 9, 12, 0, 45, 32),
                         dt.astimezone(UTCOffset(0)).replace(tzinfo=None))
        dt = parse_isodate('2015-08-22T17:08:37.500000Z')
        self.assertEqual(500000, dt.microsecond)
        self.assertRaises(ValueError, parse_isodate, 'yesterday')


if __name__ == '__main__':
    unittest.main()

# vi:set tabstop=4 softtabstop=4 shiftwidth=4 expandtab:
