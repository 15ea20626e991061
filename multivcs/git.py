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

import hashlib
import logging
import os
import re
import shutil
from .common import *
from .lookup import is_bare_git

logger = logging.getLogger(__name__)

GIT = 'git'

LOG_FORMAT = '%H%n%P%n%an%n%ae%n%ai%n%cn%n%ce%n%ci%n%D%n%B'

heads_rx = re.compile(r'^refs/heads/(?P<name>.+)$')

REBASE_FLAGS = {
    REBASE_USER: None,
    REBASE_FALSE: '--rebase=false',
    REBASE_TRUE: '--rebase=true',
    # git replaced --rebase=preserve with --rebase=merges
    REBASE_PRESERVE: '--rebase=merges',
}


def parse_decorations(decorations):
    """Split ``%D`` ref decorations into (branches, tags)."""
    branches = []
    tags = []
    for ref in decorations.split(','):
        ref = ref.strip()
        if not ref or ref == 'HEAD' or ref.endswith('/HEAD'):
            continue
        if ref.startswith('tag: '):
            tags.append(ref[len('tag: '):])
        elif ref.startswith('HEAD -> '):
            branches.append(ref[len('HEAD -> '):])
        else:
            branches.append(ref)
    return branches, tags


def _sha256(path):
    h = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(65536), b''):
            h.update(chunk)
    return h.hexdigest()


class GitRepo(VCSRepo, HookManager):
    """A git clone

    :param bool mirror: Acquire and refresh the repository as a bare mirror.
    :param str rebase: How :meth:`update` pulls; one of ``REBASE_USER``,
                       ``REBASE_FALSE``, ``REBASE_TRUE`` or ``REBASE_PRESERVE``.
    :param dict refs: Maps ref names to ``REF_FETCH`` or ``REF_DELETE``; if
                      given, :meth:`update` acts on exactly those refs.

    Valid revisions are anything that git considers as a revision.

    """
    vcs_type = 'git'
    default_remote_name = 'origin'

    def __init__(self, remote, local_path, remote_name=None, schemes=None,
                 remote_mode=CHECK_REMOTE, mirror=False, rebase=REBASE_USER,
                 refs=None):
        if rebase not in REBASE_FLAGS:
            raise ValueError('unknown rebase mode: %r' % (rebase,))
        self.mirror = mirror
        self.rebase = rebase
        self.refs = refs
        super(GitRepo, self).__init__(
            remote, local_path, remote_name, schemes, remote_mode)

    def _git(self, results, *args):
        return results.run(GIT, '-C', self.local_path, *args)

    def _is_local_repo(self, path):
        return os.path.exists(os.path.join(path, '.git')) or is_bare_git(path)

    def is_bare(self):
        """Test if the local repository has no working tree."""
        return not os.path.exists(os.path.join(self.local_path, '.git'))

    def _probe_remote(self, url, results):
        # fail instead of asking for credentials on a terminal
        env = dict(os.environ, GIT_TERMINAL_PROMPT='0')
        results.run(GIT, 'ls-remote', url, env=env)

    def _configured_remote(self, results):
        key = 'remote.%s.url' % self.remote_name
        try:
            result = self._git(results, 'config', '--get', key)
        except CommandFailed as e:
            # exit status 1 means the key is not set
            if e.returncode == 1:
                return ''
            raise
        return result.output.strip()

    def _set_configured_remote(self, remote, results):
        try:
            self._git(results, 'remote', 'set-url', self.remote_name, remote)
        except CommandFailed:
            return False
        logger.info("Changed %s remote of %s to %s", self.remote_name, self.local_path, remote)
        return True

    def _refresh(self, results):
        if self.mirror:
            self._git(results, 'remote', 'update', '--prune', self.remote_name)
        else:
            self._git(results, 'fetch', self.remote_name)

    def get(self, rev=None):
        results = Results()
        path, _ = self.exists(LOCAL)
        refresh = False
        if path:
            if self.mirror == self.is_bare():
                refresh = True
            elif path not in ('', '/'):
                logger.info("Removing %s, it is not a %s clone", path,
                            'mirror' if self.mirror else 'regular')
                shutil.rmtree(path)
        if refresh:
            logger.info("Refreshing %s from %s ..", self.local_path, self.remote_name)
            self._refresh(results)
        else:
            logger.info("Cloning %s into %s ..", self.remote, self.local_path)
            # -o does not apply to bare or mirror clones
            if self.mirror or self.remote_name == 'origin':
                results.run(GIT, 'clone', '--mirror' if self.mirror else None,
                            self.remote, self.local_path)
            else:
                results.run(GIT, 'clone', '-o', self.remote_name,
                            self.remote, self.local_path)
        if rev:
            self._rev_set(rev, results)
        return results

    def _update_refs(self, results):
        for ref in sorted(self.refs):
            op = self.refs[ref]
            if op == REF_DELETE:
                self._git(results, 'update-ref', '-d', ref)
            elif op == REF_FETCH:
                m = heads_rx.match(ref)
                if m and not self.mirror:
                    dest = 'refs/remotes/%s/%s' % (self.remote_name, m.group('name'))
                else:
                    dest = ref
                self._git(results, 'fetch', self.remote_name, '+%s:%s' % (ref, dest))
            else:
                raise ValueError('invalid ref operation %r for %s' % (op, ref))

    def update(self, rev=None):
        results = Results()
        self._require_local(results)
        if self.refs is not None:
            logger.info("Updating %d refs in %s ..", len(self.refs), self.local_path)
            self._update_refs(results)
            return results
        logger.info("Updating %s from %s ..", self.local_path, self.remote_name)
        self._refresh(results)
        if not self.mirror and not self.is_bare():
            self._git(results, 'pull', REBASE_FLAGS[self.rebase], self.remote_name, rev)
        return results

    def _rev_set(self, rev, results):
        logger.info("Checking out %s in %s", rev, self.local_path)
        self._git(results, 'checkout', str(rev))

    def rev_set(self, rev):
        results = Results()
        self._rev_set(rev, results)
        return results

    def rev_read(self, scope=CORE_REV, rev=None):
        results = Results()
        if scope == CORE_REV:
            result = self._git(results, 'log', '-1', '--format=%H', rev)
            return [Revision(result.output.strip())], results
        result = self._git(results, 'log', '-1', '--format=' + LOG_FORMAT, rev)
        (sha, parents, author, author_email, author_date, committer,
         committer_email, committer_date, decorations, comment) = \
            result.output.split('\n', 9)
        revision = Revision(sha)
        revision.ancestors = parents.split()
        revision.set_user_info(AUTHOR, author, author_email)
        revision.set_timestamp(AUTHOR, parse_isodate(author_date))
        revision.set_user_info(COMMITTER, committer, committer_email)
        revision.set_timestamp(COMMITTER, parse_isodate(committer_date))
        revision.branches, tags = parse_decorations(decorations)
        revision.set_tags(tags)
        revision.comment = comment.rstrip('\n')
        return [revision], results

    ### HOOKS ###

    def hooks_dir(self, path=None):
        """The directory git runs hooks from."""
        if path is None:
            path = self.local_path
        if os.path.exists(os.path.join(path, '.git')):
            return os.path.join(path, '.git', 'hooks')
        return os.path.join(path, 'hooks')

    def install(self, hook_path, name, mode=HOOK_LINK):
        if mode not in (HOOK_LINK, HOOK_COPY):
            raise ValueError('unknown hook mode: %r' % (mode,))
        path = self._require_local(Results())
        dest = os.path.join(self.hooks_dir(path), name)
        if os.path.lexists(dest):
            os.remove(dest)
        if not os.path.exists(hook_path):
            raise FileNotFoundError('hook source does not exist: %s' % hook_path)
        if mode == HOOK_LINK:
            os.symlink(hook_path, dest)
        else:
            shutil.copyfile(hook_path, dest)
            os.chmod(dest, 0o775)
        logger.info("Installed %s hook %s", name, dest)
        return dest

    def installed(self, hook_path, name, mode=HOOK_LINK):
        path, _ = self.exists(LOCAL)
        if not path:
            return False
        dest = os.path.join(self.hooks_dir(path), name)
        if mode == HOOK_LINK:
            return os.path.islink(dest) and os.readlink(dest) == hook_path
        if os.path.islink(dest) or not os.path.isfile(dest):
            return False
        if not os.path.isfile(hook_path):
            return False
        return _sha256(dest) == _sha256(hook_path)

    def remove(self, name):
        path = self._require_local(Results())
        dest = os.path.join(self.hooks_dir(path), name)
        os.remove(dest)
        logger.info("Removed %s hook %s", name, dest)

# vi:set tabstop=4 softtabstop=4 shiftwidth=4 expandtab:
