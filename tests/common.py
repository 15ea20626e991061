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

import os
import shutil
import subprocess
import tempfile
import unittest
from unittest import mock

keep_test_dir = False

logfile = open(os.getenv('TEST_LOG_FILE', os.devnull), 'a')


def check_call(args, **kwargs):
    logfile.write('%s\n' % repr(args))
    kwargs.setdefault('stdout', logfile)
    kwargs.setdefault('stderr', logfile)
    subprocess.check_call(args, **kwargs)


def check_output(args, **kwargs):
    logfile.write('%s\n' % repr(args))
    kwargs.setdefault('stderr', logfile)
    return subprocess.check_output(args, **kwargs)


class FakeProcess(object):
    def __init__(self, output=b'', returncode=0):
        if isinstance(output, str):
            output = output.encode('utf-8')
        self.output = output
        self.returncode = returncode

    def communicate(self):
        return self.output, None


class FakePopen(object):
    """Replaces subprocess.Popen, answering each command from ``handler``.

    ``handler(argv, kwargs)`` returns ``(returncode, output)``; every call is
    recorded in :attr:`calls`.
    """

    def __init__(self, handler=None):
        self.handler = handler or (lambda argv, kwargs: (0, ''))
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append((list(argv), kwargs))
        returncode, output = self.handler(list(argv), kwargs)
        return FakeProcess(output, returncode)

    @property
    def argvs(self):
        return [argv for argv, kwargs in self.calls]


class FakeResponse(object):
    """Replaces the object returned by requests.get."""

    def __init__(self, content=b'', status_code=200, reason='OK', chunk_size=None):
        if isinstance(content, str):
            content = content.encode('utf-8')
        self.content = content
        self.status_code = status_code
        self.reason = reason
        self.chunk_size = chunk_size
        self.closed = False

    def iter_content(self, chunk_size=1):
        size = self.chunk_size or chunk_size
        for i in range(0, len(self.content), size):
            yield self.content[i:i + size]

    def close(self):
        self.closed = True


class TempDirTest(unittest.TestCase):
    def setUp(self):
        self.dir = tempfile.mkdtemp(prefix='multivcs-test.')
        if keep_test_dir:
            print(self.dir)

    def tearDown(self):
        if not keep_test_dir:
            shutil.rmtree(self.dir)

    def path(self, *parts):
        return os.path.join(self.dir, *parts)

    def makedirs(self, *parts):
        path = self.path(*parts)
        os.makedirs(path)
        return path

    def touch(self, *parts):
        path = self.path(*parts)
        with open(path, 'w'):
            pass
        return path


class ToolTest(TempDirTest):
    """Runs each test with subprocess.Popen replaced by :meth:`respond`."""

    def setUp(self):
        super(ToolTest, self).setUp()
        self.work = self.path('work')
        self.popen = FakePopen(self.respond)
        patcher = mock.patch('multivcs.common.subprocess.Popen', self.popen)
        patcher.start()
        self.addCleanup(patcher.stop)

    def respond(self, argv, kwargs):
        return 0, ''

    def make_local(self, marker):
        os.makedirs(os.path.join(self.work, marker))

    def assertRan(self, argvs, cwd=None):
        self.assertEqual(argvs, self.popen.argvs)
        for argv, kwargs in self.popen.calls:
            self.assertEqual(cwd, kwargs.get('cwd'), argv)

# vi:set tabstop=4 softtabstop=4 shiftwidth=4 expandtab:
