"""Route tables and translation-label usage."""
from conftest import build_snapshot, extract_module
from symtrace.analyzer.i18n import LabelTree
from symtrace.analyzer.module_model import Symbol
from symtrace.analyzer.routes import RouteCollector

PAGES = ('src/pages/AccountPage.jsx', 'src/pages/HomePage.jsx', 'src/layouts/Main.jsx')


class TestRouteTables:
    def test_default_exported_object(self):
        module = extract_module("""
            import AccountPage from './pages/AccountPage';
            import HomePage from './pages/HomePage';
            import { Main } from './layouts/Main';

            export default {
                account: { path: '/account', page: AccountPage, layouts: [Main] },
                'home': { path: '/', page: HomePage },
            };
        """, module_path='src/routes.js', known=PAGES)

        assert [route.path for route in module.routes] == ['/account', '/']
        assert module.routes[0].bindings == ('AccountPage', 'Main')
        assert module.routes[1].bindings == ('HomePage',)

    def test_identifier_default_export_and_wrappers(self):
        module = extract_module("""
            import AccountPage from './pages/AccountPage';

            const routes = {
                account: ({ path: '/account', page: AccountPage }),
            } as const;

            export default routes;
        """, module_path='src/routes.ts', known=PAGES)

        assert [route.path for route in module.routes] == ['/account']
        assert module.routes[0].bindings == ('AccountPage',)

    def test_entries_without_literal_path_are_skipped(self):
        module = extract_module("""
            import HomePage from './pages/HomePage';
            const base = '/app';
            export default {
                dynamic: { path: base + '/x', page: HomePage },
                missing: { page: HomePage },
                notAnObject: HomePage,
            };
        """, module_path='src/routes.js', known=PAGES)
        assert module.routes == ()

    def test_other_file_names_are_not_route_tables(self):
        module = extract_module("""
            import HomePage from './pages/HomePage';
            export default { home: { path: '/', page: HomePage } };
        """, module_path='src/config.js', known=PAGES)
        assert module.routes == ()

    def test_route_file_names_are_configurable(self):
        collector = RouteCollector(['app-routes.ts'])
        assert collector.is_route_module('src/app-routes.ts')
        assert not collector.is_route_module('src/routes.js')

    def test_routes_map_to_resolved_symbols(self):
        snapshot = build_snapshot({
            'src/pages/AccountPage.jsx': "export default function AccountPage() { return null; }",
            'src/pages/index.js': "export { default as AccountPage } from './AccountPage';",
            'src/routes.js': """
                import { AccountPage } from './pages';
                import Missing from 'external-page';
                export default {
                    account: { path: '/account', page: AccountPage },
                    settings: { path: '/settings', page: AccountPage },
                    external: { path: '/external', page: Missing },
                };
            """,
        })

        page = Symbol('src/pages/AccountPage.jsx', 'AccountPage')
        assert dict(snapshot.symbol_to_routes) == {page: ('/account', '/settings')}


LABELS_MODULE = """
    const LABELS = translate({
        title: 'account.title',
        menu: {
            logout: 'account.menu.logout',
            help: ['account.menu.help', 'Help'],
        },
    });

    export function Title() { return LABELS.title; }
    export function Menu() { return LABELS.menu; }
    export function Logout() { return LABELS.menu.logout; }
    export function Everything() { return render(LABELS); }
    export function Nothing() { return LABELS.unknown; }
    export function Plain() { return 'no labels'; }
"""


class TestTranslationUsage:
    def test_keys_per_declaration(self):
        module = extract_module(LABELS_MODULE, module_path='src/Account.jsx')
        usage = dict(module.translation_usage)

        assert usage['Title'] == ('account.title',)
        assert usage['Menu'] == ('account.menu.logout', 'account.menu.help')
        assert usage['Logout'] == ('account.menu.logout',)
        assert usage['Everything'] == ('account.title', 'account.menu.logout', 'account.menu.help')
        assert 'Nothing' not in usage
        assert 'Plain' not in usage
        assert 'LABELS' not in usage

    def test_computed_keys_collapse_to_all_keys(self):
        module = extract_module("""
            const LABELS = translate({
                [dynamicKey]: 'a.dynamic',
                fixed: 'a.fixed',
            });
            export function Fixed() { return LABELS.fixed; }
        """)
        assert module.translation_usage['Fixed'] == ('a.dynamic', 'a.fixed')

    def test_labels_need_translate_call(self):
        module = extract_module("""
            const LABELS = { title: 'a.title' };
            export function Title() { return LABELS.title; }
        """)
        assert dict(module.translation_usage) == {}

    def test_key_to_symbols_in_snapshot(self):
        snapshot = build_snapshot({'src/Account.jsx': LABELS_MODULE})

        users = snapshot.translation_usage['account.menu.logout']
        assert users == (
            Symbol('src/Account.jsx', 'Menu'),
            Symbol('src/Account.jsx', 'Logout'),
            Symbol('src/Account.jsx', 'Everything'),
        ), "Users are listed in declaration order"
        assert list(snapshot.translation_usage) == sorted(snapshot.translation_usage)


def test_label_tree_member_lookup():
    tree = LabelTree({'a': 'k1', 'b': LabelTree({'c': 'k2', 'd': 'k3'})})

    assert tree.keys_for_members(('b', 'c')) == ('k2',)
    assert tree.keys_for_members(('b',)) == ('k2', 'k3')
    assert tree.keys_for_members(()) == ('k1', 'k2', 'k3')
    assert tree.keys_for_members(('a', 'length')) == ('k1',)
    assert tree.keys_for_members(('zzz',)) == ()
