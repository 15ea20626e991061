# Copyright (c) 2013-2014, Clemson University
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
# * Neither the name Clemson University nor the names of its
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

import logging
import os
import re
from .common import *

logger = logging.getLogger(__name__)

BZR = 'bzr'

parent_rx = re.compile(r'^\s*parent branch: (?P<url>.+)$', re.M)
user_rx = re.compile(r'^(?P<name>.*?)\s*<(?P<email>[^>]*)>$')


def parse_user(user):
    """Split ``Name <email>`` into (name, email)."""
    m = user_rx.match(user.strip())
    if m:
        return m.group('name'), m.group('email')
    return user.strip(), None


def parse_log(output):
    """Parse the first entry of ``bzr log`` long-format output into a dict.

    Header values are keyed by their label; the message is under ``message``.
    """
    fields = {}
    lines = output.splitlines()
    for i, line in enumerate(lines):
        if line.startswith('-' * 10):
            if fields:
                break
            continue
        if line.rstrip() == 'message:':
            message = []
            for msgline in lines[i + 1:]:
                if msgline.startswith('-' * 10):
                    break
                message.append(msgline[2:] if msgline.startswith('  ') else msgline)
            fields['message'] = '\n'.join(message).rstrip('\n')
            break
        key, sep, value = line.partition(': ')
        if sep:
            fields[key.strip()] = value.strip()
    return fields


class BzrRepo(VCSRepo):
    """A Bazaar branch

    Revisions are anything ``bzr help revisionspec`` accepts.

    """
    vcs_type = 'bzr'

    def _bzr(self, results, *args):
        return results.run(BZR, *args, cwd=self.local_path)

    def _is_local_repo(self, path):
        return os.path.isdir(os.path.join(path, '.bzr'))

    def _probe_remote(self, url, results):
        results.run(BZR, 'info', url)

    def _configured_remote(self, results):
        result = self._bzr(results, 'info')
        m = parent_rx.search(result.output)
        if m:
            return m.group('url').strip()
        return ''

    def check_remote(self, remote, mode=CHECK_REMOTE):
        """Adopt the configured remote if none was given

        bzr reports the parent branch in its own normalized form, so it is
        never compared with ``remote``.

        """
        path, results = self.exists(LOCAL)
        if not path or remote:
            return remote, results
        return self._configured_remote(results) or remote, results

    def get(self, rev=None):
        results = Results()
        logger.info("Branching %s into %s ..", self.remote, self.local_path)
        if rev:
            results.run(BZR, 'branch', '-r', rev, self.remote, self.local_path)
        else:
            results.run(BZR, 'branch', self.remote, self.local_path)
        return results

    def update(self, rev=None):
        results = Results()
        self._require_local(results)
        logger.info("Updating %s ..", self.local_path)
        self._bzr(results, 'pull')
        if rev:
            self._bzr(results, 'update', '-r', rev)
        else:
            self._bzr(results, 'update')
        return results

    def rev_set(self, rev):
        results = Results()
        logger.info("Updating %s to %s", self.local_path, rev)
        self._bzr(results, 'update', '-r', rev)
        return results

    def rev_read(self, scope=CORE_REV, rev=None):
        results = Results()
        if scope == CORE_REV:
            if rev:
                result = self._bzr(results, 'revno', '-r', rev)
            else:
                result = self._bzr(results, 'revno', '--tree')
            return [Revision(result.output.strip())], results
        if rev:
            result = self._bzr(results, 'log', '-l', '1', '-r', rev)
        else:
            result = self._bzr(results, 'log', '-l', '1')
        fields = parse_log(result.output)
        revision = Revision(fields.get('revno', '').split(' ', 1)[0])
        if 'committer' in fields:
            name, email = parse_user(fields['committer'])
            revision.set_user_info(COMMITTER, name, email)
        if 'author' in fields:
            name, email = parse_user(fields['author'])
            revision.set_user_info(AUTHOR, name, email)
        else:
            revision.set_user_info(AUTHOR, revision.committer, revision.committer_id)
        if 'timestamp' in fields:
            revision.set_timestamp(AUTH_COMM, parse_isodate(fields['timestamp']))
        if 'branch nick' in fields:
            revision.branches = [fields['branch nick']]
        tags = fields.get('tags')
        revision.set_tags([t.strip() for t in tags.split(',')] if tags else [])
        revision.comment = fields.get('message', '')
        return [revision], results

# vi:set tabstop=4 softtabstop=4 shiftwidth=4 expandtab:
