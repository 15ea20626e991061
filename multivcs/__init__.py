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

"""A uniform client for the git, Mercurial, Subversion and Bazaar tools.

The ``new_*`` functions below find the backend of a repository (see
:func:`detect`) and return an adapter providing the requested capability.
Keyword arguments are passed through to the adapter's constructor; the
``mirror``, ``rebase`` and ``refs`` options are only understood by git.

"""

import logging

from .version import __version__
from .lookup import detect, probe

logging.getLogger(__name__).addHandler(logging.NullHandler())


def _get_repo_class(vcs):
    from .common import UnknownVCSType
    if vcs == 'git':
        from .git import GitRepo
        return GitRepo
    elif vcs == 'hg':
        from .hg import HgRepo
        return HgRepo
    elif vcs == 'svn':
        from .svn import SvnRepo
        return SvnRepo
    elif vcs == 'bzr':
        from .bzr import BzrRepo
        return BzrRepo
    else:
        raise UnknownVCSType(vcs)


def _new(remote, local_path, vcs, kwargs):
    vcs, remote = detect(remote, local_path, vcs)
    cls = _get_repo_class(vcs)
    return cls(remote, local_path, **kwargs)


def new_reader(remote, local_path, vcs=None, **kwargs):
    """Open a repository for reading revisions

    :param str remote: The remote location; may be empty.
    :param str local_path: The path of the local copy.
    :param str vcs: If specified, assume the given repository type to avoid
                    auto-detection. Either ``bzr``, ``git``, ``hg``, or ``svn``.
    :raises UnknownVCSType: if the repository type couldn't be inferred
    :returns RevReader:

    """
    return _new(remote, local_path, vcs, kwargs)


def new_getter(remote, local_path, vcs=None, **kwargs):
    """Prepare the first-time acquisition of ``remote`` into ``local_path``

    :returns Getter:

    See :func:`new_reader` for the arguments.

    """
    return _new(remote, local_path, vcs, kwargs)


def new_updater(remote, local_path, vcs=None, **kwargs):
    """Prepare updating an existing local copy

    :returns Updater:

    See :func:`new_reader` for the arguments.

    """
    return _new(remote, local_path, vcs, kwargs)


def new_existence(remote, local_path, vcs=None, **kwargs):
    """Prepare existence checks of the local copy or the remote

    :returns Existence:

    """
    return _new(remote, local_path, vcs, kwargs)


def new_hook_manager(local_path, vcs=None):
    """Manage the hooks of a local repository

    :param str local_path: The path of the repository
    :param str vcs: If specified, assume the given repository type instead of
                    probing ``local_path``.
    :raises VCSNotImplemented: for backends other than git
    :returns HookManager:

    """
    from .common import HookManager, VCSNotImplemented, check_vcs
    if vcs:
        check_vcs(vcs)
    else:
        vcs = probe(local_path)
    cls = _get_repo_class(vcs)
    if not issubclass(cls, HookManager):
        raise VCSNotImplemented(vcs, 'hooks')
    return cls('', local_path)

# vi:set tabstop=4 softtabstop=4 shiftwidth=4 expandtab:
