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

import collections
import datetime
import logging
import os
import re
import subprocess
import threading
from abc import ABCMeta, abstractmethod

logger = logging.getLogger(__name__)

NO_VCS = ''
VCS_TYPES = ('bzr', 'git', 'hg', 'svn')

# read scopes
CORE_REV = 'core'
ALL_DATA = 'all'

# revision user roles
AUTHOR = 'author'
COMMITTER = 'committer'
AUTH_COMM = 'authcomm'

# existence check locations
LOCAL = 'local'
REMOTE = 'remote'

# remote checking behavior at construction time
CHECK_REMOTE = 'check'
UPDATE_REMOTE = 'update'

# git pull rebase behavior
REBASE_USER = 'user'
REBASE_FALSE = 'false'
REBASE_TRUE = 'true'
REBASE_PRESERVE = 'preserve'

# git ref operations
REF_FETCH = 'fetch'
REF_DELETE = 'delete'

# hook install modes
HOOK_LINK = 'symlink'
HOOK_COPY = 'copy'

ENCODING = 'utf-8'

_BUILTIN_SCHEMES = {
    'bzr': ('https', 'http', 'bzr', 'bzr+ssh'),
    'git': ('git', 'https', 'http', 'git+ssh'),
    'hg': ('https', 'http', 'ssh'),
    'svn': ('https', 'http', 'svn', 'svn+ssh'),
}
_default_schemes = dict(_BUILTIN_SCHEMES)

scheme_rx = re.compile(r'^(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*)://')
semver_rx = re.compile(r'^v?(?:0|[1-9]\d*)\.(?:0|[1-9]\d*)\.(?:0|[1-9]\d*)(?:-[0-9A-Za-z.\-]+)?(?:\+[0-9A-Za-z.\-]+)?$')
isodate_rx = re.compile(r'(?P<year>\d{4})-?(?P<month>\d{2})-?(?P<day>\d{2})(?:\s*(?:T\s*)?(?P<hour>\d{2})(?::?(?P<minute>\d{2})(?::?(?P<second>\d{2}))?)?(?:[,.](?P<fraction>\d+))?(?:\s*(?P<tz>(?:Z|[+-](?P<tzhh>\d{2})(?::?(?P<tzmm>\d{2}))?)))?)')
tz_rx = re.compile(r'^(?P<tz>(?:Z|[+-](?P<tzhh>\d{2})(?::?(?P<tzmm>\d{2}))?))$')

# serializes the process-wide chdir done by run_in_dir()
_chdir_lock = threading.Lock()


def check_vcs(vcs):
    """Raise :class:`UnknownVCSType` unless ``vcs`` names a known backend."""
    if vcs not in VCS_TYPES:
        raise UnknownVCSType(vcs)
    return vcs


def set_default_schemes(vcs, schemes=None):
    """Set the ordered list of URL schemes tried for scheme-less remotes.

    :param str vcs: Either ``bzr``, ``git``, ``hg``, or ``svn``
    :param schemes: The schemes in the order they should be tried, or None to
                    restore the built-in order.

    Repositories snapshot the list when they are constructed, so changing it
    does not affect existing instances.

    """
    check_vcs(vcs)
    if schemes is None:
        _default_schemes[vcs] = _BUILTIN_SCHEMES[vcs]
    else:
        _default_schemes[vcs] = tuple(schemes)


def default_schemes(vcs):
    return _default_schemes[check_vcs(vcs)]


def get_scheme(remote):
    """Return the URL scheme of ``remote``, or an empty string if it has none."""
    m = scheme_rx.match(remote or '')
    if m:
        return m.group('scheme')
    return ''


def split_semvers(tags):
    """Split tag names into (semantic versions, other tags)."""
    semvers = []
    others = []
    for tag in tags:
        if semver_rx.match(tag):
            semvers.append(tag)
        else:
            others.append(tag)
    return semvers, others


def parse_isodate(datestr):
    """Parse a string that loosely fits ISO 8601 formatted date-time string
    """
    m = isodate_rx.search(datestr)
    if not m:
        raise ValueError('unrecognized date format: ' + datestr)
    year, month, day = m.group('year', 'month', 'day')
    hour, minute, second, fraction = m.group('hour', 'minute', 'second', 'fraction')
    tz, tzhh, tzmm = m.group('tz', 'tzhh', 'tzmm')
    dt = datetime.datetime(int(year), int(month), int(day), int(hour or 0))
    if fraction is None:
        fraction = 0
    else:
        fraction = float('0.' + fraction)
    if minute is None:
        dt = dt.replace(minute=int(60 * fraction))
    else:
        dt = dt.replace(minute=int(minute))
        if second is None:
            dt = dt.replace(second=int(60 * fraction))
        else:
            dt = dt.replace(second=int(second), microsecond=int(1000000 * fraction))
    if tz is not None:
        if tz[0] == 'Z':
            offset = datetime.timedelta()
        else:
            offset = datetime.timedelta(minutes=int(tzmm or 0), hours=int(tzhh))
            if tz[0] == '-':
                offset = -offset
        dt = dt.replace(tzinfo=UTCOffset(offset))
    return dt


def _indent(text, prefix='  '):
    return ''.join(prefix + line for line in text.splitlines(True))


class UTCOffset(datetime.tzinfo):
    ZERO = datetime.timedelta()

    def __init__(self, offset, name=None):
        if isinstance(offset, datetime.timedelta):
            self.offset = offset
        elif isinstance(offset, str):
            m = tz_rx.match(offset)
            if not m:
                raise ValueError('unrecognized timezone: ' + offset)
            tz, tzhh, tzmm = m.group('tz', 'tzhh', 'tzmm')
            if tz[0] == 'Z':
                offset = datetime.timedelta()
            else:
                offset = datetime.timedelta(minutes=int(tzmm or 0), hours=int(tzhh))
            if tz[0] == '-':
                offset = -offset
            self.offset = offset
        else:
            self.offset = datetime.timedelta(minutes=offset)
        if name is not None:
            self.name = name
        elif self.offset < type(self).ZERO:
            self.name = '-%02d%02d' % divmod((-self.offset).seconds // 60, 60)
        else:
            self.name = '+%02d%02d' % divmod(self.offset.seconds // 60, 60)

    def utcoffset(self, dt):
        return self.offset

    def dst(self, dt):
        return type(self).ZERO

    def tzname(self, dt):
        return self.name


### ERRORS ###

class VCSError(Exception):
    """Base class of every error raised by multivcs."""


class UnknownVCSType(VCSError):
    """The backend type could not be detected (or is not a known type)."""


class RepoNotFound(VCSError):
    """A repository does not exist at the checked location.

    :ivar str location: The path or remote that was checked.
    :ivar Results results: Commands run while looking for it.
    """
    def __init__(self, location, results=None):
        super(RepoNotFound, self).__init__(location)
        self.location = location
        self.results = results if results is not None else Results()

    def __str__(self):
        return 'repository does not exist: %s' % self.location


class WrongVCS(VCSError):
    """A local directory belongs to a different backend than requested."""
    def __init__(self, expected, found, path):
        super(WrongVCS, self).__init__(expected, found, path)
        self.expected = expected
        self.found = found
        self.path = path

    def __str__(self):
        return 'wrong VCS detected in %s: expected %s, found %s' % (
            self.path, self.expected, self.found)


class WrongRemote(VCSError):
    """A local checkout is configured for a different remote."""
    def __init__(self, expected, found, results=None):
        super(WrongRemote, self).__init__(expected, found)
        self.expected = expected
        self.found = found
        self.results = results if results is not None else Results()

    def __str__(self):
        return 'remote %s does not match the configured remote %s' % (
            self.expected, self.found)


class VCSNotImplemented(VCSError):
    """The capability is not supported by this backend."""
    def __init__(self, vcs, capability):
        super(VCSNotImplemented, self).__init__(vcs, capability)
        self.vcs = vcs
        self.capability = capability

    def __str__(self):
        return '%s is not implemented for %s' % (self.capability, self.vcs)


class CommandFailed(VCSError):
    """An external tool could not be started or exited non-zero.

    :ivar Result result: The failed command line and its output.
    :ivar returncode: Exit status, or None if the tool could not be started.
    :ivar Results results: Every command of the operation, ending with the
                           failed one.
    """
    def __init__(self, result, returncode, results=None):
        super(CommandFailed, self).__init__(result, returncode)
        self.result = result
        self.returncode = returncode
        if results is None:
            results = Results([result])
        self.results = results

    def __str__(self):
        if self.returncode is None:
            status = 'could not be started'
        else:
            status = 'exited with status %d' % self.returncode
        return '%s %s\n%s' % (self.result.cmd, status, _indent(self.result.output))


class TransportError(VCSError):
    """An HTTP fetch failed or returned an unusable document."""
    def __init__(self, url, reason):
        super(TransportError, self).__init__(url, reason)
        self.url = url
        self.reason = reason

    def __str__(self):
        return '%s: %s' % (self.url, self.reason)


### COMMAND RUNNER ###

class Result(collections.namedtuple('Result', 'cmd output')):
    """One external command invocation.

    :ivar str cmd: The command line that was run.
    :ivar str output: Combined standard output and standard error.
    """
    __slots__ = ()

    def __str__(self):
        return 'cmd: %s, output:\n%s' % (self.cmd, _indent(self.output))


def run(cmd, *args, **kwargs):
    """Run an external tool and capture its combined output.

    :param str cmd: The tool to run.
    :param args: Arguments; None and empty strings are dropped, never passed
                 through. Anything else is converted with str().
    :param kwargs: Passed to :class:`subprocess.Popen` (e.g. ``cwd``).
    :returns Result: The command line and output.
    :raises CommandFailed: if the tool could not be started or exited
                           non-zero.

    """
    argv = [cmd] + [str(arg) for arg in args if arg is not None and arg != '']
    cmdline = ' '.join(argv)
    logger.debug("Running %s ..", cmdline)
    kwargs.setdefault('stdout', subprocess.PIPE)
    kwargs.setdefault('stderr', subprocess.STDOUT)
    try:
        p = subprocess.Popen(argv, **kwargs)
    except OSError as e:
        raise CommandFailed(Result(cmdline, str(e)), None)
    stdout, stderr = p.communicate()
    result = Result(cmdline, (stdout or b'').decode(ENCODING, 'replace'))
    if p.returncode != 0:
        logger.debug("%s exited with status %d", cmdline, p.returncode)
        raise CommandFailed(result, p.returncode)
    return result


def run_in_dir(path, cmd, *args):
    """Run an external tool from inside ``path``.

    This changes the working directory of the whole process for the duration
    of the command and restores it afterwards, whatever happens. Runs are
    serialized by a lock; prefer passing ``cwd`` to :func:`run` or the tool's
    own directory flag.

    """
    with _chdir_lock:
        olddir = os.getcwd()
        os.chdir(path)
        try:
            return run(cmd, *args)
        finally:
            os.chdir(olddir)


class Results(object):
    """The ordered, append-only ledger of commands run for one operation."""

    def __init__(self, results=()):
        self._results = list(results)

    def add(self, result):
        self._results.append(result)

    def extend(self, results):
        for result in results:
            self.add(result)

    def all(self):
        return list(self._results)

    def last(self):
        """The most recent :class:`Result`, or None if nothing ran yet."""
        if not self._results:
            return None
        return self._results[-1]

    def run(self, cmd, *args, **kwargs):
        """:func:`run` a command and record it, whether it succeeds or not."""
        try:
            result = run(cmd, *args, **kwargs)
        except CommandFailed as e:
            self.add(e.result)
            e.results = self
            raise
        self.add(result)
        return result

    def __iter__(self):
        return iter(self._results)

    def __len__(self):
        return len(self._results)

    def __str__(self):
        s = ''
        for i, result in enumerate(self._results, 1):
            output = _indent(result.output) or '[No output from command]\n'
            s += 'cmd %d: %s, output %d:\n%s' % (i, result.cmd, i, output)
        return s

    def __repr__(self):
        return str('<%s.%s %d results>' % (type(self).__module__, type(self).__name__, len(self)))


### REVISIONS ###

def _check_role(role):
    if role not in (AUTHOR, COMMITTER, AUTH_COMM):
        raise ValueError('unknown user role: %r' % (role,))


class Revision(object):
    """A single point in a backend's history.

    :ivar str core: The backend's own identifier (sha1, revno, changeset...)
    :ivar list semvers: Semantic version tags on the revision
    :ivar list tags: Other tags on the revision
    :ivar list branches: Branches whose latest revision this is
    :ivar list ancestors: Parent revisions
    :ivar str comment: The full commit message

    Everything but ``core`` is only filled in by an ``ALL_DATA`` read. A
    field that was not fetched is None, which is not the same thing as an
    empty list.
    """
    def __init__(self, core=None):
        self.core = core
        self.semvers = None
        self.tags = None
        self.branches = None
        self.ancestors = None
        self.comment = None
        self.author = None
        self.author_id = None
        self.author_time = None
        self.committer = None
        self.committer_id = None
        self.committer_time = None

    def __str__(self):
        return str(self.core)

    def __repr__(self):
        return str('<%s.%s %s>' % (type(self).__module__, type(self).__name__, self.core))

    def set_tags(self, tags):
        """Store tag names, separating out the semantic versions."""
        self.semvers, self.tags = split_semvers(tags)

    def timestamp(self, role):
        """The author or committer time; AUTH_COMM reads the committer."""
        _check_role(role)
        if role == AUTHOR:
            return self.author_time
        return self.committer_time

    def set_timestamp(self, role, timestamp):
        _check_role(role)
        if role in (AUTHOR, AUTH_COMM):
            self.author_time = timestamp
        if role in (COMMITTER, AUTH_COMM):
            self.committer_time = timestamp

    def user_info(self, role):
        """Return (name, userid) for the author or committer."""
        _check_role(role)
        if role == AUTHOR:
            return self.author, self.author_id
        return self.committer, self.committer_id

    def set_user_info(self, role, name, userid):
        _check_role(role)
        if role in (AUTHOR, AUTH_COMM):
            self.author = name
            self.author_id = userid
        if role in (COMMITTER, AUTH_COMM):
            self.committer = name
            self.committer_id = userid


### CAPABILITIES ###

class ABCMetaDocStringInheritor(ABCMeta):
    '''A variation on
    http://groups.google.com/group/comp.lang.python/msg/26f7b4fcb4d66c95
    by Paul McGuire
    '''
    def __new__(meta, name, bases, clsdict):
        if not('__doc__' in clsdict and clsdict['__doc__']):
            for mro_cls in (mro_cls for base in bases for mro_cls in base.mro()):
                doc = mro_cls.__doc__
                if doc:
                    clsdict['__doc__'] = doc
                    break
        for attr, attribute in clsdict.items():
            if not isinstance(attribute, (property, type(check_vcs))):
                continue
            if not attribute.__doc__:
                for mro_cls in (
                    mro_cls for base in bases for mro_cls in base.mro()
                    if hasattr(mro_cls, attr)
                ):
                    doc = getattr(getattr(mro_cls, attr), '__doc__')
                    if doc:
                        attribute.__doc__ = doc
                        break
        return ABCMeta.__new__(meta, name, bases, clsdict)


class Description(object):
    """Where a repository lives and which backend it uses.

    The backend type never changes once constructed. The remote may only be
    corrected by the repository constructor.
    """
    def __init__(self, remote, local_path, remote_name, schemes, vcs):
        self._remote = remote or ''
        self._local_path = local_path or ''
        self._remote_name = remote_name or ''
        self._schemes = tuple(schemes or ())
        self._vcs = vcs

    @property
    def remote(self):
        return self._remote

    @property
    def local_path(self):
        return self._local_path

    @property
    def remote_name(self):
        return self._remote_name

    @property
    def schemes(self):
        return self._schemes

    @property
    def vcs(self):
        return self._vcs

    def _set_remote(self, remote):
        self._remote = remote or ''


class Describer(metaclass=ABCMetaDocStringInheritor):
    """Basic facts about a repository."""

    @property
    @abstractmethod
    def vcs(self):
        """The backend type: ``bzr``, ``git``, ``hg``, or ``svn``."""
        raise NotImplementedError

    @property
    @abstractmethod
    def remote(self):
        """The remote location (URL or path) of the repository."""
        raise NotImplementedError

    @property
    @abstractmethod
    def local_path(self):
        """The local path of the working copy."""
        raise NotImplementedError

    @property
    @abstractmethod
    def remote_name(self):
        """The backend's name for the remote (e.g. ``origin``), or ``''``."""
        raise NotImplementedError

    @property
    @abstractmethod
    def schemes(self):
        """URL schemes tried, in order, when the remote has none."""
        raise NotImplementedError


class Existence(Describer):
    @abstractmethod
    def exists(self, location):
        """Find out whether the repository exists

        :param str location: Either ``LOCAL`` or ``REMOTE``.
        :returns: ``(path, results)``; ``path`` is where the repository was
                  found, or ``''`` if a local check found nothing.
        :raises RepoNotFound: if a remote check found nothing.

        """
        raise NotImplementedError


class Getter(Describer):
    @abstractmethod
    def get(self, rev=None):
        """Acquire the repository into the local path for the first time

        :param rev: Optional revision to switch to afterwards.
        :returns Results: The commands run.

        Calling this on an already populated local path is backend defined.

        """
        raise NotImplementedError


class Updater(Describer):
    @abstractmethod
    def update(self, rev=None):
        """Bring the local copy up to date with its remote

        :param rev: Optional single revision to update (merge) to.
        :returns Results: The commands run.

        """
        raise NotImplementedError


class RevSetter(Describer):
    @abstractmethod
    def rev_set(self, rev):
        """Move the local copy to exactly one revision

        :param rev: A single revision, never a range.
        :returns Results: The commands run.

        """
        raise NotImplementedError


class RevReader(Describer):
    @abstractmethod
    def rev_read(self, scope=CORE_REV, rev=None):
        """Read revision data from the local copy

        :param str scope: ``CORE_REV`` guarantees only :attr:`Revision.core`;
                          ``ALL_DATA`` also fills in what it can.
        :param rev: The revision to read; the current one if None.
        :returns: ``(revisions, results)``, a list of :class:`Revision`.

        """
        raise NotImplementedError


class HookManager(Describer):
    @abstractmethod
    def install(self, hook_path, name, mode=HOOK_LINK):
        """Install a hook

        :param str hook_path: The hook file to install.
        :param str name: The name the backend runs the hook by.
        :param str mode: ``HOOK_LINK`` (symlink) or ``HOOK_COPY``.
        :returns str: The path of the installed hook.

        """
        raise NotImplementedError

    @abstractmethod
    def installed(self, hook_path, name, mode=HOOK_LINK):
        """Test if a hook is installed exactly as :meth:`install` would."""
        raise NotImplementedError

    @abstractmethod
    def remove(self, name):
        """Remove an installed hook."""
        raise NotImplementedError


class VCSRepo(Existence, Getter, Updater, RevSetter, RevReader):
    """Base of the backend adapters

    :param str remote: The remote location; may be empty if a local copy
                       exists, in which case its configured remote is used.
    :param str local_path: Where the working copy lives (or will live).
    :param str remote_name: The backend's name for the remote.
    :param schemes: Schemes to try for a remote with no scheme; defaults to
                    :func:`default_schemes`.
    :param str remote_mode: ``CHECK_REMOTE`` or ``UPDATE_REMOTE``.
    :raises WrongVCS: if ``local_path`` holds a repository of another type.
    :raises WrongRemote: if the local copy is configured for another remote.

    """
    vcs_type = NO_VCS
    default_remote_name = ''

    def __init__(self, remote, local_path, remote_name=None, schemes=None,
                 remote_mode=CHECK_REMOTE):
        from .lookup import probe
        if remote_name is None:
            remote_name = self.default_remote_name
        if schemes is None:
            schemes = default_schemes(self.vcs_type)
        self.description = Description(remote, local_path, remote_name, schemes, self.vcs_type)
        try:
            found = probe(local_path)
        except (RepoNotFound, UnknownVCSType):
            found = None
        if found is not None and found != self.vcs_type:
            raise WrongVCS(self.vcs_type, found, local_path)
        if found is not None:
            remote, _ = self.check_remote(remote, remote_mode)
            self.description._set_remote(remote)

    def __repr__(self):
        return str('<%s.%s %s %s>' % (type(self).__module__, type(self).__name__,
                                      self.remote, self.local_path))

    @property
    def vcs(self):
        return self.description.vcs

    @property
    def remote(self):
        return self.description.remote

    @property
    def local_path(self):
        return self.description.local_path

    @property
    def remote_name(self):
        return self.description.remote_name

    @property
    def schemes(self):
        return self.description.schemes

    @abstractmethod
    def _is_local_repo(self, path):
        """Test for the backend's marker files under ``path``."""
        raise NotImplementedError

    @abstractmethod
    def _probe_remote(self, url, results):
        """Run the command that fails unless ``url`` is a reachable repo."""
        raise NotImplementedError

    @abstractmethod
    def _configured_remote(self, results):
        """Ask the local copy which remote it was acquired from."""
        raise NotImplementedError

    def _set_configured_remote(self, remote, results):
        """Point the local copy at ``remote``; False if unsupported."""
        return False

    def check_remote(self, remote, mode=CHECK_REMOTE):
        """Validate ``remote`` against the local copy's configured remote

        :returns: ``(remote, results)``; the configured remote is returned
                  if ``remote`` is empty.
        :raises WrongRemote: if they differ (and could not be updated when
                             ``mode`` is ``UPDATE_REMOTE``).

        """
        path, results = self.exists(LOCAL)
        if not path:
            return remote, results
        configured = self._configured_remote(results)
        if not configured:
            return remote, results
        if not remote:
            return configured, results
        if configured != remote:
            if mode == UPDATE_REMOTE and self._set_configured_remote(remote, results):
                return remote, results
            raise WrongRemote(remote, configured, results)
        return remote, results

    def exists(self, location):
        results = Results()
        if location == LOCAL:
            if self.local_path and self._is_local_repo(self.local_path):
                return self.local_path, results
            return '', results
        elif location == REMOTE:
            return self._remote_exists(results)
        raise ValueError('unknown location: %r' % (location,))

    def _remote_exists(self, results):
        remote = self.remote
        if not remote:
            raise RepoNotFound(remote, results)
        if get_scheme(remote) or os.path.isabs(remote) or not self.schemes:
            candidates = [remote]
        else:
            candidates = ['%s://%s' % (scheme, remote) for scheme in self.schemes]
        for candidate in candidates:
            try:
                self._probe_remote(candidate, results)
            except CommandFailed:
                logger.debug("No %s repository at %s", self.vcs, candidate)
                continue
            return candidate, results
        raise RepoNotFound(remote, results)

    def _require_local(self, results):
        path, _ = self.exists(LOCAL)
        if not path:
            raise RepoNotFound(self.local_path, results)
        return path

# vi:set tabstop=4 softtabstop=4 shiftwidth=4 expandtab:
