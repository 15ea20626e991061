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

"""Backend type detection.

A backend type is found, in order, from an explicit type, from the remote
location (known hosts, then conventional suffixes, then an HTML
``go-import`` meta tag served by the host), and finally from the marker
files in the local directory. The remote is consulted before the local
directory so that a checkout of one type can be replaced by another.

"""

import codecs
import json
import logging
import os
import re
from html.parser import HTMLParser
from urllib.parse import urlsplit, urlunsplit

import requests

from .common import (
    NO_VCS, VCS_TYPES, RepoNotFound, TransportError, UnknownVCSType, check_vcs,
)

logger = logging.getLogger(__name__)

VANITY_QUERY = 'go-get=1'
VANITY_META_NAME = 'go-import'
VANITY_SCHEMES = ('http', 'https')

# ASCII is a subset of UTF-8, which is what the document is decoded as
ALLOWED_CHARSETS = ('ascii', 'us-ascii', 'utf-8', 'utf8')

CHUNK_SIZE = 4096

# marker files of a working copy, in priority order
LOCAL_MARKERS = (
    ('.git', 'git'),
    ('.svn', 'svn'),
    ('.hg', 'hg'),
    ('.bzr', 'bzr'),
)

google_checkout_rx = re.compile(r'id="checkoutcmd">(hg|git|svn)')
xml_encoding_rx = re.compile(r'''encoding\s*=\s*["']([^"']+)["']''', re.I)
content_charset_rx = re.compile(r'charset\s*=\s*["\']?([^"\';\s]+)', re.I)


def _fetch(url):
    logger.debug("Fetching %s ..", url)
    try:
        response = requests.get(url)
    except requests.RequestException as e:
        raise TransportError(url, str(e))
    if response.status_code != 200:
        raise TransportError(url, '%d %s' % (response.status_code, response.reason))
    return response.content


def expand(match, s):
    """Replace ``{key}`` placeholders in ``s`` with values from ``match``."""
    for k, v in match.items():
        s = s.replace('{' + k + '}', v or '')
    return s


def check_bitbucket(info):
    """Ask the Bitbucket API which backend a repository uses."""
    url = expand(info, 'https://api.bitbucket.org/2.0/repositories/{name}')
    data = _fetch(url)
    try:
        return json.loads(data.decode('utf-8'))['scm']
    except (ValueError, KeyError, TypeError) as e:
        raise TransportError(url, 'decoding error: %s' % e)


def check_google(info):
    """Scrape the Google Code checkout page for the backend in use.

    Subversion was only ever served from the legacy ``googlecode.com``
    hosts, so it is not accepted here.
    """
    url = expand(info, 'https://code.google.com/p/{project}/source/checkout?repo={repo}')
    m = google_checkout_rx.search(_fetch(url).decode('utf-8', 'replace'))
    if m and m.group(1) != 'svn':
        return m.group(1)
    return NO_VCS


def check_url(info):
    """The backend is named by the ``type`` group of the pattern."""
    return info['type']


class HostRule(object):
    """One entry of the host table

    :param str host: The host the rule applies to; None matches any host.
    :param str pattern: Regular expression searched in ``host + path``.
    :param str vcs: The backend implied by a match, if it is fixed.
    :param check: Called with the pattern's named groups to find the backend
                  when ``vcs`` is not fixed; may go to the network.

    """
    def __init__(self, host, pattern, vcs=None, check=None):
        self.host = host
        self.pattern = pattern
        self.regex = re.compile(pattern)
        self.vcs = vcs
        self.check = check

    def __repr__(self):
        return str('<%s.%s %s>' % (type(self).__module__, type(self).__name__,
                                   self.host or self.pattern))

    def resolve(self, match):
        if self.vcs:
            return self.vcs
        return self.check(match.groupdict())


HOST_RULES = [
    HostRule(
        'github.com',
        r'^(github\.com/[A-Za-z0-9_.\-]+/[A-Za-z0-9_.\-]+)(/[A-Za-z0-9_.\-]+)*$',
        vcs='git',
    ),
    HostRule(
        'bitbucket.org',
        r'^(bitbucket\.org/(?P<name>[A-Za-z0-9_.\-]+/[A-Za-z0-9_.\-]+))(/[A-Za-z0-9_.\-]+)*$',
        check=check_bitbucket,
    ),
    HostRule(
        'launchpad.net',
        r'^(launchpad\.net/(([A-Za-z0-9_.\-]+)(/[A-Za-z0-9_.\-]+)?|~[A-Za-z0-9_.\-]+/(\+junk|[A-Za-z0-9_.\-]+)/[A-Za-z0-9_.\-]+))(/[A-Za-z0-9_.\-]+)*$',
        vcs='bzr',
    ),
    HostRule(
        'git.launchpad.net',
        r'^(git\.launchpad\.net/(([A-Za-z0-9_.\-]+)|~[A-Za-z0-9_.\-]+/(\+git|[A-Za-z0-9_.\-]+)/[A-Za-z0-9_.\-]+))$',
        vcs='git',
    ),
    HostRule(
        'go.googlesource.com',
        r'^(go\.googlesource\.com/[A-Za-z0-9_.\-]+/?)$',
        vcs='git',
    ),
    HostRule(
        'code.google.com',
        r'^(code\.google\.com/[pr]/(?P<project>[a-z0-9\-]+)(\.(?P<repo>[a-z0-9\-]+))?)(/[A-Za-z0-9_.\-]+)*$',
        check=check_google,
    ),
    # legacy <project>.googlecode.com/<type> layout
    HostRule(
        None,
        r'^([a-z0-9_\-.]+)\.googlecode\.com/(?P<type>git|hg|svn)(/.*)?$',
        check=check_url,
    ),
    # any host, typed by the conventional suffix; must stay last
    HostRule(
        None,
        r'\.(?P<type>git|hg|svn|bzr)$',
        check=check_url,
    ),
]


def _split_remote(remote):
    try:
        parts = urlsplit(remote or '')
    except ValueError:
        raise UnknownVCSType(remote)
    host = parts.netloc.rpartition('@')[2]
    return parts, host


def _match_host_rules(remote, host, hostpath):
    for rule in HOST_RULES:
        if rule.host is not None and rule.host != host:
            continue
        m = rule.regex.search(hostpath)
        if m is None:
            # a known host with a path that is not a repository
            if rule.host is not None:
                raise UnknownVCSType(remote)
            continue
        logger.debug("%s matches host rule %r", remote, rule)
        try:
            vcs = rule.resolve(m)
        except TransportError as e:
            logger.warning("Unable to check the VCS of %s: %s", remote, e)
            raise
        if vcs not in VCS_TYPES:
            raise UnknownVCSType(remote)
        return vcs
    return None


def detect_vcs_from_url(remote):
    """Detect the backend from the shape of a remote URL alone

    :raises UnknownVCSType: if the URL has no host or matches no rule.
    :raises TransportError: if a secondary host check could not be made.

    Only rules with a secondary check go to the network.

    """
    parts, host = _split_remote(remote)
    if not host:
        raise UnknownVCSType(remote)
    vcs = _match_host_rules(remote, host, host + parts.path)
    if vcs is None:
        raise UnknownVCSType(remote)
    return vcs


class ImportMetaParser(HTMLParser):
    """Scan the head of an HTML document for the ``go-import`` meta tag.

    Tag and attribute names are matched case-insensitively; scanning stops
    at ``<body>`` or ``</head>``.
    """

    def __init__(self, url, hostpath):
        HTMLParser.__init__(self, convert_charrefs=True)
        self.url = url
        self.hostpath = hostpath
        self.done = False
        self.found = False
        self.vcs = NO_VCS
        self.repo = ''

    def check_charset(self, charset):
        if charset.strip().lower() not in ALLOWED_CHARSETS:
            raise TransportError(self.url, "can't decode document using charset %r" % charset)

    def handle_pi(self, data):
        if self.done:
            return
        m = xml_encoding_rx.search(data)
        if m:
            self.check_charset(m.group(1))

    def handle_starttag(self, tag, attrs):
        if self.done:
            return
        if tag == 'body':
            self.done = True
        elif tag == 'meta':
            self.handle_meta(attrs)

    def handle_endtag(self, tag):
        if tag == 'head':
            self.done = True

    def handle_meta(self, attrs):
        values = {}
        for name, value in attrs:
            values.setdefault(name, value or '')
        if 'charset' in values:
            self.check_charset(values['charset'])
        if values.get('http-equiv', '').lower() == 'content-type':
            m = content_charset_rx.search(values.get('content', ''))
            if m:
                self.check_charset(m.group(1))
        if values.get('name') != VANITY_META_NAME:
            return
        fields = values.get('content', '').split()
        if len(fields) != 3:
            return
        prefix, vcs, repo = fields
        # one import statement per document
        if self.found:
            raise UnknownVCSType(self.url)
        self.found = True
        if not self.hostpath.startswith(prefix):
            raise UnknownVCSType(self.url)
        if vcs in VCS_TYPES:
            self.vcs = vcs
        self.repo = repo


def parse_vanity_import(url, hostpath, chunks):
    """Find the backend and repository announced by a vanity document

    :param str url: The URL the document came from (for errors).
    :param str hostpath: The host and path that was asked for.
    :param chunks: Iterable of the document's bytes.
    :returns: ``(vcs, repo)``; ``vcs`` is ``NO_VCS`` if nothing usable was
              announced.
    :raises UnknownVCSType: for a second meta tag or a prefix mismatch.
    :raises TransportError: for a declared charset other than ASCII/UTF-8.

    """
    parser = ImportMetaParser(url, hostpath)
    decoder = codecs.getincrementaldecoder('utf-8')('replace')
    for chunk in chunks:
        parser.feed(decoder.decode(chunk))
        if parser.done:
            break
    else:
        parser.feed(decoder.decode(b'', True))
        parser.close()
    if not parser.repo:
        return NO_VCS, ''
    return parser.vcs, parser.repo


def detect_vcs_from_vanity(remote):
    """Resolve a vanity remote through the host's ``go-import`` meta tag

    :returns: ``(vcs, repo)`` where ``repo`` replaces the remote.
    :raises UnknownVCSType: if the document does not name a usable backend.
    :raises TransportError: if the document could not be fetched or read.

    """
    parts, host = _split_remote(remote)
    if not host or parts.scheme not in VANITY_SCHEMES:
        raise UnknownVCSType(remote)
    if parts.query:
        query = parts.query + '&' + VANITY_QUERY
    else:
        query = VANITY_QUERY
    url = urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
    logger.debug("Fetching %s ..", url)
    try:
        response = requests.get(url, stream=True)
    except requests.RequestException as e:
        logger.warning("Unable to fetch %s: %s", url, e)
        raise TransportError(url, str(e))
    try:
        vcs, repo = parse_vanity_import(url, host + parts.path, response.iter_content(CHUNK_SIZE))
    except requests.RequestException as e:
        logger.warning("Unable to read %s: %s", url, e)
        raise TransportError(url, str(e))
    finally:
        response.close()
    if not vcs or not repo:
        raise UnknownVCSType(remote)
    logger.debug("%s resolved to %s repository %s", remote, vcs, repo)
    return vcs, repo


def detect_vcs_from_remote(remote):
    """Detect the backend from a remote location

    :returns: ``(vcs, remote)``; the remote changes only when a vanity
              document points elsewhere.
    :raises UnknownVCSType: if the backend could not be determined.
    :raises TransportError: if a host check or vanity document could not be
                            fetched.

    """
    parts, host = _split_remote(remote)
    if not host:
        raise UnknownVCSType(remote)
    vcs = _match_host_rules(remote, host, host + parts.path)
    if vcs is not None:
        return vcs, remote
    return detect_vcs_from_vanity(remote)


def is_bare_git(path):
    """Test for the markers of a git repository without a working tree."""
    return (
        os.path.isdir(os.path.join(path, 'refs')) and
        os.path.isfile(os.path.join(path, 'config'))
    )


def probe(path):
    """Probe a local directory for its backend type.

    :param str path: The path of the working copy
    :raises RepoNotFound: if the path does not exist
    :raises UnknownVCSType: if the repository type couldn't be inferred
    :returns str: either ``git``, ``svn``, ``hg``, or ``bzr``

    """
    if not path or not os.path.exists(path):
        raise RepoNotFound(path)
    for marker, vcs in LOCAL_MARKERS:
        if os.path.exists(os.path.join(path, marker)):
            return vcs
    if is_bare_git(path):
        return 'git'
    raise UnknownVCSType(path)


def detect(remote, local_path, vcs=None):
    """Determine the backend type of a repository

    :param str remote: The remote location, possibly empty.
    :param str local_path: The local working copy path, possibly missing.
    :param str vcs: An explicit type; skips all probing.
    :returns: ``(vcs, remote)``; see :func:`detect_vcs_from_remote`.
    :raises UnknownVCSType: if neither location identifies the backend.
    :raises RepoNotFound: if the remote is inconclusive and the local path
                          does not exist.
    :raises TransportError: if a host check or vanity document could not be
                            fetched.

    """
    if vcs:
        return check_vcs(vcs), remote
    try:
        return detect_vcs_from_remote(remote)
    except UnknownVCSType:
        logger.debug("Unable to detect VCS from remote %r, probing %r", remote, local_path)
    return probe(local_path), remote

# vi:set tabstop=4 softtabstop=4 shiftwidth=4 expandtab:
