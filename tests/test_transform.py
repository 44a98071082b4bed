"""End-to-end tests for DebugRemover.transform_source.

Each case feeds a literal program through parsing, analysis and the applier
and compares the output with line breaks (and the indentation after them)
removed, so removed statements do not have to match blank-line layout.
"""
import re

import pytest

from undebug.reaper.debug_remover import DebugRemover


def normalize_whitespace(text: str) -> str:
    """Drop line breaks and the indentation following them; keep other spaces."""
    return re.sub(r'[\r\n]\s*', '', text.strip())


def transform(code: str, language: str = 'javascript', target: str = 'debug') -> str:
    return DebugRemover(target).transform_source(code, language).code


def assert_transform(code: str, expected: str, message: str, language: str = 'javascript'):
    assert normalize_whitespace(transform(code, language)) == normalize_whitespace(expected), message


class TestRequireAndImport:
    """Seeding from require() calls and import statements."""

    def test_empty_file(self):
        result = DebugRemover().transform_source('')
        assert result.code == '', "should not crash on an empty file"
        assert not result.changed

    def test_require_then_instance(self):
        assert_transform(
            '''
            var d = require("debug");
            var a = d("a");
            a("b")
            ''',
            '',
            "should support requiring debug and making instances later"
        )

    def test_immediate_instance(self):
        assert_transform(
            '''
            var a = require("debug")("a");
            a("b")
            ''',
            '',
            "should support making an instance from a debug require"
        )

    def test_multiple_requires(self):
        assert_transform(
            '''
            var a = require("debug");
            var b = require("debug")("b");
            var c = require("debug")("c");
            a("x")(1);
            b(2);
            c(3)
            ''',
            '',
            "should support requiring debug several times, in several ways"
        )

    @pytest.mark.parametrize('import_line', [
        'import d from "debug";',
        'import {debug as d} from "debug";',
        'import * as d from "debug";',
    ])
    def test_import_forms(self, import_line):
        assert_transform(
            f'''
            {import_line}
            var a = d("a");
            a("b")
            ''',
            '',
            f"should support `{import_line}` and making instances later"
        )

    def test_other_require_untouched(self):
        code = '''
        var a = require("assert");
        assert("a");
        '''
        assert transform(code) == code, "should not remove other require calls"

    def test_other_import_untouched(self):
        code = '''
        import assert from "assert";
        assert("a");
        '''
        assert transform(code) == code, "should not remove other imports"

    def test_unrelated_calls_untouched(self):
        code = '''
        a(1);
        b = 1 + 1;
        c()();
        d.e();
        f("g")
        '''
        assert transform(code) == code, "should not remove other calls"

    def test_local_require_is_not_the_loader(self):
        code = '''
        function require(name) { return name; }
        var a = require("debug");
        a("b");
        '''
        assert transform(code) == code

    def test_destructured_require(self):
        assert_transform(
            '''
            const { enable, disable } = require("debug");
            enable("app:*");
            disable();
            ''',
            '',
            "should support destructuring the required module"
        )

    def test_bare_require_statement(self):
        assert_transform(
            '''
            require("debug");
            start();
            ''',
            'start();',
            "a require kept only for its side effects should be removed"
        )

    def test_type_only_import(self):
        assert_transform(
            '''
            import type { Debugger } from "debug";
            export const n = 1;
            ''',
            'export const n = 1;',
            "type-only imports of the module should be removed",
            language='typescript'
        )

    def test_side_effect_import_removed(self):
        assert_transform(
            '''
            import "debug";
            run();
            ''',
            'run();',
            "a bare import of the module should be removed"
        )

    def test_custom_target_module(self):
        code = '''
        import trace from "trace";
        import debug from "debug";
        trace("a");
        debug("b");
        '''
        output = transform(code, target='trace')
        assert normalize_whitespace(output) == 'import debug from "debug";debug("b");'


class TestPropagation:
    """Aliasing, destructuring and property extraction."""

    def test_destructuring(self):
        assert_transform(
            '''
            import debug from 'debug';
            const {extend, enable} = debug;
            const log = extend('sub');
            enable('*');
            ''',
            '',
            "should handle destructuring"
        )

    def test_aliased_callers(self):
        assert_transform(
            '''
            import {debug as d} from "debug";
            var a = d("a");
            var b = a;
            b("c");
            ''',
            '',
            "should support aliased callers"
        )

    def test_member_call(self):
        assert_transform(
            '''
            import {debug as d} from "debug";
            var a = d("a");
            a.log("b");
            ''',
            '',
            "should remove member property function calls"
        )

    def test_member_property_read(self):
        assert_transform(
            '''
            import {debug as d} from "debug";
            var a = d("a");
            console.log("is a.enabled?", a.enabled)
            ''',
            'console.log("is a.enabled?", undefined)',
            "should replace member properties with undefined"
        )

    def test_aliased_member_property_read(self):
        assert_transform(
            '''
            import {debug as d} from "debug";
            var a = d("a");
            var b = a;
            console.log("is b.enabled?", b.enabled)
            ''',
            'console.log("is b.enabled?", undefined)',
            "should replace aliased member properties with undefined"
        )

    def test_aliased_member_function(self):
        assert_transform(
            '''
            import {debug as d} from "debug";
            var a = d("a");
            var b = a.log;
            b("c");
            ''',
            '',
            "should remove aliased member property function calls"
        )

    def test_alias_with_member_call(self):
        assert_transform(
            '''
            import {debug as d} from "debug";
            var a = d("a");
            var b = a;
            b.log("c");
            ''',
            '',
            "should remove alias that uses a member property"
        )

    def test_reference_before_alias_declaration(self):
        code = '''
        function later() {
            b("c");
        }
        var a = require("debug")("a");
        var b = a;
        later();
        '''
        result = DebugRemover().transform_source(code)
        assert normalize_whitespace(result.code) == 'function later() {}later();'
        assert result.passes >= 2

    def test_assignment_spreads_taint(self):
        assert_transform(
            '''
            import d from "debug";
            let log;
            log = d("app");
            log("ready");
            ''',
            'let log;',
            "assigning a tainted value should taint the assigned name"
        )

    def test_destructuring_assignment_spreads_taint(self):
        assert_transform(
            '''
            import d from "debug";
            let a, b, on;
            ({ a, b } = d);
            ({ enable: on } = d);
            a("x");
            b("y");
            on("*");
            keep();
            ''',
            'let a, b, on;keep();',
            "every name a destructuring assignment writes should be tainted"
        )


class TestDeclarators:
    """Multi-declarator statements keep their untainted declarators."""

    def test_multiple_declarations(self):
        assert_transform(
            '''
            import {debug as d} from "debug";
            var a = d("a"), other = 123;
            const x = d("x"), y = 456, z = d("z");
            let p = d("p"), q = 789;
            a("b");
            x("test");
            z("foo");
            p("bar");
            console.log(other, y, q);
            ''',
            '''
            var other = 123;
            const y = 456;
            let q = 789;
            console.log(other, y, q);
            ''',
            "should handle multiple variable declarations, removing only debug-related ones"
        )

    def test_declarator_order_preserved(self):
        output = transform('''
        import d from "debug";
        var first = 1, log = d("a"), second = 2, trace = d("b"), third = 3;
        ''')
        assert normalize_whitespace(output) == 'var first = 1, second = 2, third = 3;'

    def test_all_declarators_tainted_removes_statement(self):
        assert_transform(
            '''
            import d from "debug";
            const a = d("a"), b = d("b");
            keep();
            ''',
            'keep();',
            "a declaration whose declarators are all tainted should go entirely"
        )

    def test_exported_declaration_removed(self):
        assert_transform(
            '''
            import d from "debug";
            export const log = d("lib");
            export function run() {
                log("run");
            }
            ''',
            'export function run() {}',
            "export wrapper should go with its declaration"
        )


class TestPlaceholders:
    """Values consumed as data become `undefined`; callees lose their statement."""

    def test_property_as_argument_vs_callee(self):
        output = transform('''
        import d from "debug";
        const log = d("a");
        report(log.enabled, 1);
        log.enabled();
        ''')
        assert normalize_whitespace(output) == 'report(undefined, 1);'

    def test_bare_identifier_read(self):
        assert_transform(
            '''
            import d from "debug";
            register(d);
            ''',
            'register(undefined);',
            "a tainted value passed along should be replaced"
        )

    def test_shorthand_property(self):
        assert_transform(
            '''
            import d from "debug";
            const options = { d, level: 2 };
            ''',
            'const options = { d: undefined, level: 2 };',
            "shorthand properties should keep their key"
        )

    def test_call_in_condition_keeps_control_flow(self):
        assert_transform(
            '''
            import d from "debug";
            const log = d("a");
            if (log("x")) {
                go();
            }
            ''',
            'if (undefined) {go();}',
            "calls feeding a condition should be replaced, not deleted with the if"
        )

    def test_call_as_arrow_body(self):
        assert_transform(
            '''
            import d from "debug";
            const log = d("a");
            items.forEach((item) => log(item));
            ''',
            'items.forEach((item) => undefined);',
            "an arrow expression body should be replaced"
        )

    def test_single_statement_slot(self):
        assert_transform(
            '''
            import d from "debug";
            const log = d("a");
            if (ready) log("ready");
            ''',
            'if (ready) ;',
            "a removed statement that fills a required slot leaves an empty statement"
        )

    def test_delete_of_tainted_property(self):
        assert_transform(
            '''
            import d from "debug";
            const log = d("a");
            delete log.enabled;
            delete d.names;
            keep();
            ''',
            'keep();',
            "a delete of a tainted value should remove the whole statement"
        )

    def test_trailing_comment_survives(self):
        output = transform('''
        import d from "debug";
        const log = d("a"); // trailing
        keep(); log("x"); keep2();
        ''')
        assert normalize_whitespace(output) == '// trailingkeep(); keep2();'


class TestScoping:
    """Taint follows bindings, not names."""

    def test_shadowed_parameter(self):
        output = transform('''
        import d from "debug";
        function local(d) {
            d("kept");
        }
        d("removed");
        ''')
        assert 'd("kept")' in output, "a parameter named like the import is a different binding"
        assert 'd("removed")' not in output

    def test_shadowed_block_declaration(self):
        output = transform('''
        const log = require("debug")("a");
        {
            const log = console.log;
            log("kept");
        }
        log("removed");
        ''')
        assert 'log("kept")' in output
        assert 'log("removed")' not in output

    def test_hoisted_var_use_before_declaration(self):
        output = transform('''
        function early() {
            log("x");
        }
        var log = require("debug")("app");
        ''')
        assert normalize_whitespace(output) == 'function early() {}'


class TestTypeScript:
    """The same analysis over the TypeScript grammars."""

    def test_typescript_import(self):
        assert_transform(
            '''
            import debug from "debug";
            const log: debug.Debugger = debug("app");
            function add(a: number, b: number): number {
                log("adding");
                return a + b;
            }
            ''',
            'function add(a: number, b: number): number {return a + b;}',
            "type annotations should not get in the way",
            language='typescript'
        )

    def test_import_equals_require(self):
        assert_transform(
            '''
            import d = require("debug");
            d("a")("b");
            ''',
            '',
            "TypeScript import-equals should be seeded",
            language='typescript'
        )

    def test_tsx(self):
        assert_transform(
            '''
            import d from "debug";
            const log = d("ui");
            export const App = () => {
                log("render");
                return <div enabled={log.enabled} />;
            };
            ''',
            'export const App = () => {return <div enabled={undefined} />;};',
            "TSX sources should be handled",
            language='tsx'
        )


class TestProperties:
    """Properties that hold for every input."""

    SAMPLES = [
        '''
        import {debug as d} from "debug";
        var a = d("a"), other = 123;
        var b = a;
        b.log("c");
        console.log(other, b.enabled);
        ''',
        '''
        const createDebug = require("debug");
        const { extend } = createDebug;
        const sub = extend("sub");
        export { sub };
        sub("x");
        ''',
    ]

    @pytest.mark.parametrize('code', SAMPLES)
    def test_idempotent(self, code):
        once = transform(code)
        twice = transform(once)
        assert twice == once, "a second run should find nothing left to remove"

    @pytest.mark.parametrize('code', SAMPLES)
    def test_no_target_references_remain(self, code):
        output = transform(code)
        assert '"debug"' not in output
        assert 'log(' not in output.replace('console.log(', '')

    def test_unrelated_code_conserved(self):
        code = '''
        import fs from "fs";
        const data = fs.readFileSync("x", "utf8"), size = data.length;
        function debug(message) {
            console.error(message);
        }
        debug(`size ${size}`);
        '''
        result = DebugRemover().transform_source(code)
        assert result.code == code
        assert not result.changed

    @pytest.mark.parametrize('length', [1, 2, 5, 20])
    def test_alias_chain_of_any_length(self, length):
        lines = ['var b1 = require("debug")("x");']
        lines += [f'var b{i} = b{i - 1};' for i in range(2, length + 1)]
        lines.append(f'b{length}("end");')
        lines.append('done();')

        result = DebugRemover().transform_source('\n'.join(lines))
        assert normalize_whitespace(result.code) == 'done();'
        assert result.tainted == length, f"all {length} aliases should be tainted"

    def test_syntax_error_left_untouched(self):
        code = 'var log = require("debug")("a");\nlog("x"\n'
        result = DebugRemover().transform_source(code)
        assert result.code == code
        assert result.skipped == 'syntax errors'


class TestTargetModule:

    def test_default_target(self):
        assert DebugRemover().target_module == 'debug'

    @pytest.mark.parametrize('target', ['', '   '])
    def test_empty_target_rejected(self, target):
        with pytest.raises(ValueError):
            DebugRemover(target)
