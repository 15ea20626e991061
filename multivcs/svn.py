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
import xml.etree.ElementTree as ET
from .common import *

logger = logging.getLogger(__name__)

SVN = 'svn'
SVNVERSION = 'svnversion'

url_rx = re.compile(r'^URL: (?P<url>.+)$', re.M)


def _text(elem, path):
    child = elem.find(path)
    if child is None:
        return None
    return child.text or ''


class SvnRepo(VCSRepo):
    """A Subversion working copy

    Revisions are revision numbers.

    """
    vcs_type = 'svn'

    def _svn(self, results, *args):
        return results.run(SVN, *args, cwd=self.local_path)

    def _is_local_repo(self, path):
        return os.path.isdir(os.path.join(path, '.svn'))

    def _probe_remote(self, url, results):
        results.run(SVN, 'info', url)

    def _configured_remote(self, results):
        result = results.run(SVN, 'info', self.local_path)
        m = url_rx.search(result.output)
        if m:
            return m.group('url').strip()
        return ''

    def get(self, rev=None):
        results = Results()
        logger.info("Checking out %s into %s ..", self.remote, self.local_path)
        if rev:
            results.run(SVN, 'checkout', '-r', rev, self.remote, self.local_path)
        else:
            results.run(SVN, 'checkout', self.remote, self.local_path)
        return results

    def update(self, rev=None):
        results = Results()
        self._require_local(results)
        logger.info("Updating %s ..", self.local_path)
        if rev:
            self._svn(results, 'update', '-r', rev)
        else:
            self._svn(results, 'update')
        return results

    def rev_set(self, rev):
        results = Results()
        logger.info("Updating %s to r%s", self.local_path, rev)
        self._svn(results, 'update', '-r', rev)
        return results

    def _info(self, results, rev):
        if rev:
            result = self._svn(results, 'info', '--xml', '-r', rev)
        else:
            result = self._svn(results, 'info', '--xml')
        return ET.fromstring(result.output).find('entry')

    def rev_read(self, scope=CORE_REV, rev=None):
        results = Results()
        if scope == CORE_REV:
            if rev:
                entry = self._info(results, rev)
                return [Revision(entry.find('commit').get('revision'))], results
            result = results.run(SVNVERSION, '.', cwd=self.local_path)
            return [Revision(result.output.strip())], results
        entry = self._info(results, rev)
        commit = entry.find('commit')
        revision = Revision(commit.get('revision'))
        # Subversion records a single user per revision
        revision.set_user_info(AUTH_COMM, _text(commit, 'author'), None)
        date = _text(commit, 'date')
        if date:
            revision.set_timestamp(AUTH_COMM, parse_isodate(date))
        result = self._svn(results, 'log', '--xml', '-r', revision.core)
        logentry = ET.fromstring(result.output).find('logentry')
        if logentry is not None:
            revision.comment = _text(logentry, 'msg')
        return [revision], results

# vi:set tabstop=4 softtabstop=4 shiftwidth=4 expandtab:
