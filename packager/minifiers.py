# ==========================================
# MINIFIER DRIVERS
# ==========================================
import asyncio
import json
import os
import re
from abc import ABC, abstractmethod
from typing import Any, Dict

from .config import deep_merge
from .errors import MinifyError
from .log import debug_log
from .result import Err, ErrorKind, Ok, TransformError

#: Baseline javascript-obfuscator settings. User ``js`` options win.
JS_OBFUSCATOR_DEFAULTS: Dict[str, Any] = {
    'compact': True,
    'controlFlowFlattening': True,
    'controlFlowFlatteningThreshold': 1,
    'deadCodeInjection': False,
    'deadCodeInjectionThreshold': 0,
    'debugProtection': False,
    'debugProtectionInterval': 0,
    'disableConsoleOutput': False,
    'log': False,
    'renameGlobals': False,
    'selfDefending': True,
    'stringArray': True,
    'stringArrayEncoding': ['rc4'],
    'stringArrayRotate': True,
    'stringArrayThreshold': 1,
    'unicodeEscapeSequence': False,
}

# Only a map reference that ends the text is removed
_SOURCE_MAP_RES = [
    re.compile(r'\s*//[#@] sourceMappingURL=[^\r\n]*\s*\Z'),
    re.compile(r'\s*/\*[#@] sourceMappingURL=[^*]*\*/\s*\Z'),
]

# Reads {"code", "options"} as JSON from stdin; `run` returns the JSON reply.
_NODE_PRELUDE = """
const chunks = [];
process.stdin.on('data', (chunk) => chunks.push(chunk));
process.stdin.on('end', () => {
    try {
        const input = JSON.parse(Buffer.concat(chunks).toString('utf8'));
        process.stdout.write(JSON.stringify(run(input.code, input.options)));
    } catch (err) {
        process.stderr.write(String((err && err.stack) || err));
        process.exit(1);
    }
});
"""

_OBFUSCATOR_SCRIPT = _NODE_PRELUDE + """
function run(code, options) {
    const result = require('javascript-obfuscator').obfuscate(code, options);
    return {code: result.getObfuscatedCode()};
}
"""

_CLEAN_CSS_SCRIPT = _NODE_PRELUDE + """
function run(code, options) {
    const CleanCss = require('clean-css');
    const result = new CleanCss(options).minify(code);
    return {styles: result.styles, errors: result.errors};
}
"""


def is_production():
    """True when NODE_ENV says this is a production build."""
    return 'production' in os.environ.get('NODE_ENV', '')


def should_minify(unit, options):
    return bool((options.minify or is_production()) and unit.minify)


def cleanse(code):
    """Strip a trailing source map comment and surrounding whitespace."""
    for pattern in _SOURCE_MAP_RES:
        code = pattern.sub('', code)
    return code.strip()


class Minifier(ABC):
    """Abstract base class for minifiers."""

    @abstractmethod
    async def minify(self, code: str, options: Dict) -> str:
        pass


class PassthroughMinifier(Minifier):
    """Used for file types without a minifier."""

    async def minify(self, code: str, options: Dict) -> str:
        return code


class NodeMinifier(Minifier):
    """Runs a Node.js package in a `node` subprocess, talking JSON over stdio."""

    package = None
    script = None

    async def run_node(self, code: str, options: Dict) -> Dict:
        node = os.environ.get('FEPACK_NODE', 'node')
        payload = json.dumps({'code': code, 'options': options}).encode('utf-8')

        try:
            proc = await asyncio.create_subprocess_exec(
                node, '-e', self.script,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise MinifyError(
                f"Unable to run '{node}'",
                details=str(e),
                suggestion="Install Node.js or point FEPACK_NODE at the node binary",
            )

        stdout, stderr = await proc.communicate(payload)
        if proc.returncode != 0:
            raise MinifyError(
                f"{self.package} failed (exit code {proc.returncode})",
                details=stderr.decode('utf-8', errors='replace').strip()[:500],
                suggestion=f"Make sure '{self.package}' is installed: npm install {self.package}",
            )

        try:
            return json.loads(stdout.decode('utf-8'))
        except ValueError as e:
            raise MinifyError(f"Unreadable output from {self.package}", details=str(e))


class ObfuscatorMinifier(NodeMinifier):
    """JavaScript, through javascript-obfuscator."""

    package = 'javascript-obfuscator'
    script = _OBFUSCATOR_SCRIPT

    async def minify(self, code: str, options: Dict) -> str:
        result = await self.run_node(code, deep_merge(JS_OBFUSCATOR_DEFAULTS, options))
        if not isinstance(result.get('code'), str):
            raise MinifyError(f"{self.package} returned no code")
        return result['code']


class CleanCssMinifier(NodeMinifier):
    """Style sheets, through clean-css."""

    package = 'clean-css'
    script = _CLEAN_CSS_SCRIPT

    async def minify(self, code: str, options: Dict) -> str:
        result = await self.run_node(code, deep_merge({}, options))
        errors = result.get('errors') or []
        if errors:
            raise MinifyError(f"{self.package} reported errors", details=str(errors[0]))
        if not isinstance(result.get('styles'), str):
            raise MinifyError(f"{self.package} returned no styles")
        return result['styles']


def get_minifier(ext):
    """Factory function to get the minifier for a file extension."""
    if ext == 'js':
        return ObfuscatorMinifier()
    if ext == 'css':
        return CleanCssMinifier()
    return PassthroughMinifier()


async def run_minifier(ext, code, options):
    """Minify ``code``; returns Ok(minified) or Err(TransformError)."""
    minifier = get_minifier(ext)
    user_options = {'js': options.js, 'css': options.css}.get(ext, {})
    try:
        return Ok(await minifier.minify(code, user_options))
    except MinifyError as e:
        return Err(TransformError(kind=ErrorKind.MINIFY_ERROR, message=e.message, details=e.details))
    except Exception as e:
        return Err(TransformError(kind=ErrorKind.MINIFY_ERROR, message=str(e)))


async def attempt_minify(ext, code, options):
    """Minify ``code``, falling back to the original if the minifier fails."""
    result = await run_minifier(ext, code, options)
    if result.is_err():
        debug_log(f"Minification failed, keeping original code: {result.error}")
    return result.unwrap_or(code)
