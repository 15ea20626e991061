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

HG = 'hg'

NULL_NODE = '0' * 40

paths_rx = re.compile(r'^default = (?P<url>.+)$', re.M)

LOG_TEMPLATE = '\n'.join([
    '{node}',
    '{p1node} {p2node}',
    '{author|person}',
    '{author|email}',
    '{date|isodatesec}',
    '{branch}',
    '{tags}',
    '{bookmarks}',
    '{desc}',
])


class HgRepo(VCSRepo):
    """A Mercurial clone

    Valid revisions are anything that Mercurial considers as a revision.

    """
    vcs_type = 'hg'

    def _hg(self, results, *args):
        return results.run(HG, *args, cwd=self.local_path)

    def _is_local_repo(self, path):
        return os.path.isdir(os.path.join(path, '.hg'))

    def _probe_remote(self, url, results):
        results.run(HG, 'identify', url)

    def _configured_remote(self, results):
        result = self._hg(results, 'paths')
        m = paths_rx.search(result.output)
        if m:
            return m.group('url').strip()
        return ''

    def get(self, rev=None):
        results = Results()
        logger.info("Cloning %s into %s ..", self.remote, self.local_path)
        if rev:
            results.run(HG, 'clone', '-u', rev, self.remote, self.local_path)
        else:
            results.run(HG, 'clone', self.remote, self.local_path)
        return results

    def update(self, rev=None):
        results = Results()
        self._require_local(results)
        logger.info("Updating %s ..", self.local_path)
        self._hg(results, 'pull')
        if rev:
            self._hg(results, 'update', '-r', rev)
        else:
            self._hg(results, 'update')
        return results

    def rev_set(self, rev):
        results = Results()
        logger.info("Updating %s to %s", self.local_path, rev)
        self._hg(results, 'update', '-r', rev)
        return results

    def rev_read(self, scope=CORE_REV, rev=None):
        results = Results()
        if scope == CORE_REV:
            if rev:
                result = self._hg(results, 'identify', '-r', rev)
            else:
                result = self._hg(results, 'identify')
            return [Revision(result.output.split(None, 1)[0])], results
        if not rev:
            # the working directory's parent
            rev = '.'
        result = self._hg(results, 'log', '-l', '1', '-r', rev, '--template', LOG_TEMPLATE)
        (node, parents, user, email, date, branch, tags, bookmarks,
         desc) = result.output.split('\n', 8)
        revision = Revision(node)
        revision.ancestors = [p for p in parents.split() if p != NULL_NODE]
        # Mercurial records a single user per changeset
        revision.set_user_info(AUTH_COMM, user, email)
        revision.set_timestamp(AUTH_COMM, parse_isodate(date))
        revision.branches = [branch] + bookmarks.split()
        revision.set_tags([t for t in tags.split() if t != 'tip'])
        revision.comment = desc
        return [revision], results

# vi:set tabstop=4 softtabstop=4 shiftwidth=4 expandtab:
